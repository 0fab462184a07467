"""
Entitlement evaluation.

Pure functions deciding whether a subscription unlocks a content item. No I/O
happens here; callers resolve the subscription and fetch the catalog first.
"""

from typing import Iterable, List, Optional, Tuple

from coachgate.models.content import ContentItem
from coachgate.models.membership import Subscription, SubscriptionStatus
from coachgate.models.tier import tier_rank


def is_accessible(item: ContentItem, subscription: Optional[Subscription]) -> bool:
    """
    Decide whether the subscription unlocks the item.

    An active subscription at the provider is required for anything; status
    is checked before tier. Items without a required tier are open to every
    active subscriber, unless they are scoped to a package: those open only
    to subscribers of that package.

    Raises:
        UnknownTierError: If either tier label is outside the registry
    """
    if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
        return False
    if item.required_tier is None:
        if item.package_id:
            return subscription.package_id == item.package_id
        return True
    return tier_rank(subscription.tier) >= tier_rank(item.required_tier)


def evaluate_catalog(
    items: Iterable[ContentItem], subscription: Optional[Subscription]
) -> List[Tuple[ContentItem, bool]]:
    """Pair every item with its verdict, keeping catalog order."""
    return [(item, is_accessible(item, subscription)) for item in items]


def count_unlocked(items: Iterable[ContentItem], subscription: Optional[Subscription]) -> int:
    return sum(1 for _, accessible in evaluate_catalog(items, subscription) if accessible)
