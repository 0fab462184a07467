from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field, field_serializer, field_validator
from typing import Optional

from coachgate.constants.tiers import DEFAULT_PERIOD_DAYS
from coachgate.models.tier import Tier


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return the datetime as timezone-aware UTC (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status"""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    PENDING = "pending"


class Subscription(BaseModel):
    """A caller's membership at one provider"""

    subscription_id: str
    caller_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    tier: Tier
    package_id: Optional[str] = Field(default=None)
    status: SubscriptionStatus = Field(default=SubscriptionStatus.PENDING)
    current_period_start: Optional[datetime] = Field(default=None)
    current_period_end: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("tier", mode="before")
    @classmethod
    def parse_tier(cls, v):
        # UnknownTierError is not a ValueError, so it escapes pydantic untouched
        return Tier.parse(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            # Payment processor spelling
            if v == "canceled":
                return SubscriptionStatus.CANCELLED
        return v

    @field_validator(
        "current_period_start", "current_period_end", "created_at", "updated_at"
    )
    @classmethod
    def ensure_utc(cls, v):
        if isinstance(v, datetime):
            return as_utc(v)
        return v

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def caller_provider(self) -> str:
        """Composite key used by the caller/provider index."""
        return caller_provider_key(self.caller_id, self.provider_id)

    def start_period(self, now: Optional[datetime] = None) -> None:
        """Open a fresh billing period starting now."""
        now = now or utc_now()
        self.current_period_start = now
        self.current_period_end = now + timedelta(days=DEFAULT_PERIOD_DAYS)
        self.updated_at = now


def caller_provider_key(caller_id: str, provider_id: str) -> str:
    return f"{caller_id}#{provider_id}"


class BrandingProfile(BaseModel):
    """Provider branding shown on the member landing page"""

    primary_color: str = Field(default="#4F46E5")
    logo_url: Optional[str] = Field(default=None)
    tagline: Optional[str] = Field(default=None, max_length=200)


class Provider(BaseModel):
    """Coach or gym that owns content and sells subscriptions"""

    provider_id: str
    name: str
    slug: str = Field(description="Public handle used in member-facing URLs")
    email: Optional[str] = Field(default=None)
    branding: BrandingProfile = Field(default_factory=BrandingProfile)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("slug", mode="before")
    @classmethod
    def normalize_slug(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class Package(BaseModel):
    """Priced bundle a provider sells at a given tier"""

    package_id: str
    provider_id: str
    name: str
    description: Optional[str] = Field(default=None)
    tier: Tier
    price: Decimal = Field(ge=0)
    currency: str = Field(default="EUR")
    is_published: bool = Field(default=False)
    sort_order: int = Field(default=0)

    @field_validator("tier", mode="before")
    @classmethod
    def parse_tier(cls, v):
        return Tier.parse(v)

    @field_serializer("price", when_used="json")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)
