from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from coachgate.models.membership import Subscription


class NoSubscriptionPolicy(str, Enum):
    """What a caller without an active subscription sees in a catalog"""

    UPGRADE_PROMPT = "upgrade_prompt"  # every item listed as locked
    HIDE = "hide"  # the whole section is hidden

    @classmethod
    def from_setting(cls, value: Optional[str]) -> "NoSubscriptionPolicy":
        if not value:
            return cls.UPGRADE_PROMPT
        return cls(value.strip().lower())


class MemberContext(BaseModel):
    """
    Request-scoped state of the caller viewing a provider.

    Built once per request and passed explicitly; the subscription is only
    attached through with_subscription so the resolver stays the single
    writer.
    """

    model_config = ConfigDict(frozen=True)

    caller_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    email: Optional[str] = None
    subscription: Optional[Subscription] = None
    subscription_resolved: bool = False

    def with_subscription(self, subscription: Optional[Subscription]) -> "MemberContext":
        return self.model_copy(
            update={"subscription": subscription, "subscription_resolved": True}
        )
