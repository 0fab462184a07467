"""
Render gate: turns an entitlement verdict into a presentation variant.

The verdict is taken as given. Locked cards never carry a URL.
"""

import logging
from botocore.exceptions import BotoCoreError, ClientError
from typing import Any, Optional

from coachgate.constants.tiers import DEFAULT_SIGNED_URL_TTL_SECONDS
from coachgate.models.content import CardAction, ContentCard, ContentItem, ContentType
from coachgate.models.tier import Tier
from coachgate.services.aws import get_s3_client

logger = logging.getLogger(__name__)

TIER_DISPLAY_NAMES = {
    Tier.BASIC: "Basic",
    Tier.PREMIUM: "Premium",
    Tier.ELITE: "Elite",
}


class ObjectUrlSigner:
    """Produces time-limited links to content files in object storage."""

    def __init__(
        self,
        bucket: str,
        ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
        s3_client: Optional[Any] = None,
    ):
        self.bucket = bucket
        self.ttl_seconds = ttl_seconds
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = get_s3_client()
        return self._s3_client

    def url_for(self, storage_ref: str) -> str:
        """
        Get a URL for a stored file.

        Args:
            storage_ref: S3 key, or an absolute URL stored by older uploads

        Returns:
            Absolute URLs unchanged, otherwise a presigned GET URL
        """
        if storage_ref.startswith(("http://", "https://")):
            return storage_ref
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": storage_ref.lstrip("/")},
                ExpiresIn=self.ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to sign {storage_ref} in {self.bucket}: {e}")
            raise


def upgrade_prompt(item: ContentItem) -> str:
    if item.required_tier is None:
        return "Subscribe to unlock this content."
    return f"Available from the {TIER_DISPLAY_NAMES[item.required_tier]} plan. Upgrade to unlock."


def render_card(
    item: ContentItem, accessible: bool, url_signer: Optional[ObjectUrlSigner] = None
) -> ContentCard:
    """
    Select the unlocked or locked variant of an item.

    Args:
        item: Content item to present
        accessible: Verdict of the entitlement evaluator
        url_signer: Signs storage references of unlocked items; without it the
            raw reference is returned

    Returns:
        ContentCard: open/download card with a URL, or upgrade card without one
    """
    common = {
        "content_id": item.content_id,
        "title": item.title,
        "description": item.description,
        "content_type": item.content_type,
        "thumbnail_url": item.thumbnail_url,
        "required_tier": item.required_tier,
    }
    if not accessible:
        return ContentCard(
            **common,
            locked=True,
            action=CardAction.UPGRADE,
            upgrade_prompt=upgrade_prompt(item),
        )

    action = CardAction.DOWNLOAD if item.content_type == ContentType.DOCUMENT else CardAction.OPEN
    url = url_signer.url_for(item.storage_ref) if url_signer else item.storage_ref
    return ContentCard(**common, locked=False, action=action, url=url)
