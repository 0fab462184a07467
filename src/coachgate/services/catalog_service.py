"""
Catalog Service for provider content.

Reads the published catalog of a provider and lets the provider register and
publish content whose files were uploaded to object storage beforehand.
"""

import uuid
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError
from typing import Any, Dict, List, Optional
from aws_lambda_powertools import Logger

from coachgate.models.content import ContentItem, ContentType
from coachgate.models.errors import ContentNotFoundError, FetchError, PersistenceError
from coachgate.models.tier import Tier, parse_optional_tier
from coachgate.services.aws import get_ddb_table
from coachgate.services.provider_service import ProviderService

logger = Logger()

PROVIDER_INDEX = "ProviderIndex"


def _content_to_item(content: ContentItem) -> Dict[str, Any]:
    return content.model_dump(mode="json", exclude_none=True)


def catalog_sort_key(item: ContentItem) -> tuple:
    """Provider-defined order, ties broken by creation time ascending."""
    return (item.sort_order, item.created_at)


class CatalogService:
    """Service for reading and administering provider content"""

    def __init__(self, table_name: str, provider_service: Optional[ProviderService] = None):
        """
        Args:
            table_name: DynamoDB table name for content
            provider_service: Resolves the tier of package-scoped items
        """
        self.table_name = table_name
        self.provider_service = provider_service

    @property
    def table(self):
        return get_ddb_table(self.table_name)

    def fetch_published_content(
        self, provider_id: str, content_type: Optional[ContentType | str] = None
    ) -> List[ContentItem]:
        """
        Published content of a provider in display order.

        Args:
            provider_id: Provider whose catalog is listed
            content_type: Optional filter on the content type

        Returns:
            List[ContentItem]: Published items; empty means the provider has none

        Raises:
            FetchError: If the store cannot be read
            UnknownTierError: If an item references a tier outside the registry
        """
        if not provider_id:
            raise ValueError("provider_id is required")

        condition = Attr("is_published").eq(True)
        if content_type is not None:
            condition = condition & Attr("content_type").eq(ContentType(content_type).value)

        rows: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {
            "IndexName": PROVIDER_INDEX,
            "KeyConditionExpression": Key("provider_id").eq(provider_id),
            "FilterExpression": condition,
        }
        try:
            while True:
                response = self.table.query(**kwargs)
                rows.extend(response.get("Items", []))
                if not response.get("LastEvaluatedKey"):
                    break
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            logger.error(
                f"Error fetching content of provider {provider_id}: {e.response['Error']['Message']}"
            )
            raise FetchError(provider_id, e.response["Error"]["Code"]) from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error: {str(e)}")
            raise FetchError(provider_id, str(e)) from e

        try:
            items = [ContentItem(**row) for row in rows]
        except ValidationError as e:
            logger.error(f"Malformed content row for provider {provider_id}: {str(e)}")
            raise FetchError(provider_id, "malformed content row") from e
        items = self._apply_package_tiers(provider_id, items)
        # Index order is creation time; sorted() is stable
        items = sorted(items, key=catalog_sort_key)
        logger.info(f"Fetched {len(items)} published items for provider {provider_id}")
        return items

    def get_content(self, content_id: str) -> ContentItem:
        try:
            response = self.table.get_item(Key={"content_id": content_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting content {content_id}: {str(e)}")
            raise PersistenceError(f"Failed to read content {content_id}") from e

        item = response.get("Item")
        if not item:
            raise ContentNotFoundError(content_id)
        try:
            return ContentItem(**item)
        except ValidationError as e:
            logger.error(f"Malformed content row {content_id}: {str(e)}")
            raise PersistenceError(f"Content {content_id} is stored in an unreadable form") from e

    def _apply_package_tiers(self, provider_id: str, items: List[ContentItem]) -> List[ContentItem]:
        """
        Give package-scoped items without a required tier the tier of their package.

        Items whose package cannot be found keep no tier; the evaluator then
        only opens them to subscribers of that exact package.
        """
        if self.provider_service is None:
            return items
        tiers: Dict[str, Optional[Tier]] = {}
        resolved = []
        for item in items:
            if item.required_tier is None and item.package_id:
                if item.package_id not in tiers:
                    package = self.provider_service.get_package(item.package_id)
                    owned = package is not None and package.provider_id == provider_id
                    tiers[item.package_id] = package.tier if owned else None
                if tiers[item.package_id] is not None:
                    item = item.model_copy(update={"required_tier": tiers[item.package_id]})
            resolved.append(item)
        return resolved

    def register_content(
        self,
        provider_id: str,
        title: str,
        content_type: ContentType | str,
        storage_ref: str,
        required_tier: Tier | str | None = None,
        package_id: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
        sort_order: int = 0,
        published: bool = False,
    ) -> ContentItem:
        """
        Store metadata of content uploaded by a provider.

        The file itself is already in object storage; storage_ref points at it.
        Content scoped to a package is gated by the package's tier.

        Raises:
            PackageNotFoundError: If the package is not one of the provider's
            ValueError: If the required tier contradicts the package tier
        """
        if package_id:
            if self.provider_service is None:
                raise ValueError("Package-scoped content needs a provider service")
            package = self.provider_service.get_provider_package(provider_id, package_id)
            if required_tier is not None and parse_optional_tier(required_tier) not in (None, package.tier):
                raise ValueError(
                    f"required_tier {parse_optional_tier(required_tier).value} does not match "
                    f"package {package_id} ({package.tier.value})"
                )
            required_tier = package.tier

        content = ContentItem(
            content_id=str(uuid.uuid4()),
            provider_id=provider_id,
            package_id=package_id,
            required_tier=required_tier,
            title=title,
            description=description,
            content_type=content_type,
            is_published=published,
            storage_ref=storage_ref,
            thumbnail_url=thumbnail_url,
            sort_order=sort_order,
        )
        try:
            self.table.put_item(
                Item=_content_to_item(content),
                ConditionExpression="attribute_not_exists(content_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error saving content metadata for provider {provider_id}: {str(e)}")
            raise PersistenceError("Failed to save content metadata") from e

        logger.info(f"Registered {content.content_type.value} {content.content_id} for provider {provider_id}")
        return content

    def set_published(self, provider_id: str, content_id: str, published: bool) -> ContentItem:
        """
        Publish or unpublish an item owned by the provider.

        Raises:
            ContentNotFoundError: If the item does not exist or belongs to another provider
        """
        try:
            self.table.update_item(
                Key={"content_id": content_id},
                UpdateExpression="SET is_published = :published",
                ConditionExpression="provider_id = :provider",
                ExpressionAttributeValues={":published": published, ":provider": provider_id},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ContentNotFoundError(content_id) from e
            logger.error(f"Error updating content {content_id}: {e.response['Error']['Message']}")
            raise PersistenceError(f"Failed to update content {content_id}") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error: {str(e)}")
            raise PersistenceError(f"Failed to update content {content_id}") from e

        logger.info(f"Content {content_id} of provider {provider_id} published={published}")
        return self.get_content(content_id)
