from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, computed_field, field_validator
from typing import List, Optional

from coachgate.models.membership import as_utc, utc_now
from coachgate.models.tier import Tier, parse_optional_tier


class ContentType(str, Enum):
    """Kind of content a provider publishes"""

    VIDEO = "video"
    DOCUMENT = "document"
    IMAGE = "image"
    TEXT = "text"


class ContentItem(BaseModel):
    """A single piece of provider content gated by tier"""

    content_id: str
    provider_id: str
    package_id: Optional[str] = Field(default=None)
    required_tier: Optional[Tier] = Field(
        default=None,
        description="Lowest tier that unlocks the item; None means any active subscriber",
    )
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None)
    content_type: ContentType
    is_published: bool = Field(default=False)
    storage_ref: str = Field(description="S3 object key or absolute URL")
    thumbnail_url: Optional[str] = Field(default=None)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("required_tier", mode="before")
    @classmethod
    def parse_required_tier(cls, v):
        return parse_optional_tier(v)

    @field_validator("content_type", mode="before")
    @classmethod
    def normalize_content_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v):
        return as_utc(v)


class CardAction(str, Enum):
    """Presentation variant chosen by the render gate"""

    OPEN = "open"
    DOWNLOAD = "download"
    UPGRADE = "upgrade"


class ContentCard(BaseModel):
    """Render-ready representation of a content item for one caller"""

    content_id: str
    title: str
    description: Optional[str] = None
    content_type: ContentType
    thumbnail_url: Optional[str] = None
    locked: bool
    action: CardAction
    url: Optional[str] = None
    required_tier: Optional[Tier] = None
    upgrade_prompt: Optional[str] = None


class MemberView(BaseModel):
    """Tier-gated catalog of one provider as seen by one caller"""

    provider_id: str
    caller_id: str
    subscription_tier: Optional[Tier] = None
    subscription_status: Optional[str] = None
    section_hidden: bool = False
    cards: List[ContentCard] = Field(default_factory=list)

    @computed_field
    @property
    def unlocked_count(self) -> int:
        return sum(1 for card in self.cards if not card.locked)

    def cards_by_type(self) -> dict[str, List[ContentCard]]:
        """Group cards by content type, keeping catalog order within each group."""
        grouped: dict[str, List[ContentCard]] = {t.value: [] for t in ContentType}
        for card in self.cards:
            grouped[card.content_type.value].append(card)
        return grouped
