"""
Provider Service for coach profiles and their packages.
"""

import re
import uuid
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError
from decimal import Decimal
from pydantic import ValidationError
from typing import Any, Dict, List, Optional, Type, TypeVar
from aws_lambda_powertools import Logger

from coachgate.models.errors import (
    FetchError,
    PackageNotFoundError,
    PersistenceError,
    ProviderNotFoundError,
)
from coachgate.models.membership import BrandingProfile, Package, Provider
from coachgate.models.tier import Tier
from coachgate.services.aws import get_ddb_table

logger = Logger()

M = TypeVar("M", Provider, Package)

SLUG_INDEX = "SlugIndex"
PROVIDER_INDEX = "ProviderIndex"

_SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def _build(model: Type[M], item: Dict[str, Any], key: str) -> M:
    """Validate a stored row; malformed rows surface as FetchError."""
    try:
        return model(**item)
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__.lower()} row {key}: {str(e)}")
        raise FetchError(key, f"malformed {model.__name__.lower()} row") from e


def slugify(name: str) -> str:
    """Turn a display name into a subdomain-safe slug ("Anna's Gym" -> "annas-gym")."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower().replace("'", ""))
    return slug.strip("-")[:63]


class ProviderService:
    """Service for reading and registering providers and packages"""

    def __init__(self, provider_table_name: str, package_table_name: str):
        self.provider_table_name = provider_table_name
        self.package_table_name = package_table_name

    @property
    def provider_table(self):
        return get_ddb_table(self.provider_table_name)

    @property
    def package_table(self):
        return get_ddb_table(self.package_table_name)

    def register_provider(
        self,
        name: str,
        email: Optional[str] = None,
        slug: Optional[str] = None,
        branding: Optional[BrandingProfile] = None,
        provider_id: Optional[str] = None,
    ) -> Provider:
        """
        Register a provider profile.

        Args:
            name: Display name of the coach or gym
            email: Contact email
            slug: Public handle; derived from the name if omitted
            branding: Landing page branding
            provider_id: Identity of the coach account; generated if omitted

        Returns:
            Provider: The stored provider

        Raises:
            ValueError: If the slug is invalid or already taken
        """
        slug = (slug or slugify(name)).strip().lower()
        if not _SLUG_PATTERN.match(slug):
            raise ValueError(f"Invalid slug: {slug!r}")
        if self.find_provider_by_slug(slug):
            raise ValueError(f"Slug {slug} is already taken")

        provider = Provider(
            provider_id=provider_id or str(uuid.uuid4()),
            name=name,
            slug=slug,
            email=email,
            branding=branding or BrandingProfile(),
        )
        try:
            self.provider_table.put_item(
                Item=provider.model_dump(mode="json", exclude_none=True),
                ConditionExpression="attribute_not_exists(provider_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error registering provider {slug}: {str(e)}")
            raise PersistenceError(f"Failed to register provider {slug}") from e

        logger.info(f"Registered provider {provider.provider_id} ({slug})")
        return provider

    def get_provider(self, provider_id: str) -> Provider:
        try:
            response = self.provider_table.get_item(Key={"provider_id": provider_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting provider {provider_id}: {str(e)}")
            raise FetchError(provider_id, str(e)) from e

        item = response.get("Item")
        if not item:
            raise ProviderNotFoundError(provider_id)
        return _build(Provider, item, provider_id)

    def find_provider_by_slug(self, slug: str) -> Optional[Provider]:
        """Look up a provider by public slug, as used by subdomain routing."""
        slug = slug.strip().lower()
        try:
            response = self.provider_table.query(
                IndexName=SLUG_INDEX,
                KeyConditionExpression=Key("slug").eq(slug),
                Limit=1,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error looking up provider slug {slug}: {str(e)}")
            raise FetchError(slug, str(e)) from e

        items = response.get("Items", [])
        return _build(Provider, items[0], slug) if items else None

    def get_provider_by_slug(self, slug: str) -> Provider:
        provider = self.find_provider_by_slug(slug)
        if provider is None:
            raise ProviderNotFoundError(slug)
        return provider

    def register_package(
        self,
        provider_id: str,
        name: str,
        tier: Tier | str,
        price: Decimal | str | float,
        description: Optional[str] = None,
        currency: str = "EUR",
        sort_order: int = 0,
    ) -> Package:
        """Create an unpublished package for a provider."""
        self.get_provider(provider_id)
        package = Package(
            package_id=str(uuid.uuid4()),
            provider_id=provider_id,
            name=name,
            description=description,
            tier=tier,
            price=Decimal(str(price)),
            currency=currency,
            is_published=False,
            sort_order=sort_order,
        )
        item: Dict[str, Any] = package.model_dump(exclude_none=True)
        item["tier"] = package.tier.value
        try:
            self.package_table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating package for provider {provider_id}: {str(e)}")
            raise PersistenceError("Failed to create package") from e

        logger.info(f"Created {package.tier.value} package {package.package_id} for provider {provider_id}")
        return package

    def get_package(self, package_id: str) -> Optional[Package]:
        try:
            response = self.package_table.get_item(Key={"package_id": package_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting package {package_id}: {str(e)}")
            raise FetchError(package_id, str(e)) from e

        item = response.get("Item")
        return _build(Package, item, package_id) if item else None

    def get_provider_package(self, provider_id: str, package_id: str) -> Package:
        """A package of the given provider; foreign packages count as missing."""
        package = self.get_package(package_id)
        if package is None or package.provider_id != provider_id:
            raise PackageNotFoundError(package_id)
        return package

    def set_package_published(self, provider_id: str, package_id: str, published: bool) -> Package:
        package = self.get_provider_package(provider_id, package_id)
        try:
            self.package_table.update_item(
                Key={"package_id": package_id},
                UpdateExpression="SET is_published = :p",
                ExpressionAttributeValues={":p": published},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error publishing package {package_id}: {str(e)}")
            raise PersistenceError("Failed to update package") from e
        return package.model_copy(update={"is_published": published})

    def list_published_packages(self, provider_id: str) -> List[Package]:
        """
        Published packages of a provider ordered by sort order.

        Raises:
            FetchError: If the store cannot be read
        """
        items: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {
            "IndexName": PROVIDER_INDEX,
            "KeyConditionExpression": Key("provider_id").eq(provider_id),
            "FilterExpression": Attr("is_published").eq(True),
        }
        try:
            while True:
                response = self.package_table.query(**kwargs)
                items.extend(response.get("Items", []))
                if not response.get("LastEvaluatedKey"):
                    break
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing packages of provider {provider_id}: {str(e)}")
            raise FetchError(provider_id, str(e)) from e

        packages = [_build(Package, item, provider_id) for item in items]
        packages.sort(key=lambda p: p.sort_order)
        return packages
