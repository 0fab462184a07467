import random

import pytest

from coachgate.models.content import ContentItem, ContentType
from coachgate.models.errors import UnknownTierError
from coachgate.models.membership import Subscription, SubscriptionStatus
from coachgate.services.entitlement import count_unlocked, evaluate_catalog, is_accessible


def make_item(content_id: str, required_tier=None) -> ContentItem:
    return ContentItem(
        content_id=content_id,
        provider_id="provider-1",
        required_tier=required_tier,
        title=f"Item {content_id}",
        content_type=ContentType.VIDEO,
        is_published=True,
        storage_ref=f"provider-1/{content_id}.mp4",
    )


def make_subscription(tier: str, status: SubscriptionStatus = SubscriptionStatus.ACTIVE) -> Subscription:
    return Subscription(
        subscription_id="sub-1",
        caller_id="caller-1",
        provider_id="provider-1",
        tier=tier,
        status=status,
    )


@pytest.fixture
def catalog():
    return [
        make_item("1", "basic"),
        make_item("2", "premium"),
        make_item("3", "elite"),
        make_item("4", None),
    ]


def test_premium_subscriber_unlocks_up_to_premium(catalog):
    verdicts = {item.content_id: accessible for item, accessible in evaluate_catalog(catalog, make_subscription("premium"))}
    assert verdicts == {"1": True, "2": True, "3": False, "4": True}


def test_no_subscription_locks_everything(catalog):
    assert [is_accessible(item, None) for item in catalog] == [False, False, False, False]


@pytest.mark.parametrize("status", [SubscriptionStatus.CANCELLED, SubscriptionStatus.PENDING])
def test_inactive_status_dominates_tier(catalog, status):
    subscription = make_subscription("elite", status=status)
    assert count_unlocked(catalog, subscription) == 0


def test_unknown_item_tier_raises_instead_of_denying():
    # Bypass model validation to simulate a row that escaped it
    item = ContentItem.model_construct(
        content_id="5",
        provider_id="provider-1",
        required_tier="ultra",
        title="Mystery",
        content_type=ContentType.VIDEO,
        storage_ref="x",
    )
    with pytest.raises(UnknownTierError):
        is_accessible(item, make_subscription("elite"))


def test_unknown_item_tier_rejected_at_model_boundary():
    with pytest.raises(UnknownTierError):
        make_item("5", "ultra")


def test_unlocked_count_matches_rank_comparison():
    tiers = ["basic", "premium", "elite", None]
    items = [make_item(str(i), tiers[i % 4]) for i in range(20)]
    for caller_tier, expected_rank in (("basic", 1), ("premium", 2), ("elite", 3)):
        subscription = make_subscription(caller_tier)
        expected = sum(1 for item in items if item.required_tier is None or item.required_tier.rank <= expected_rank)
        assert count_unlocked(items, subscription) == expected


def test_evaluation_is_deterministic_and_order_preserving(catalog):
    subscription = make_subscription("premium")
    shuffled = list(catalog)
    random.Random(7).shuffle(shuffled)
    first = evaluate_catalog(shuffled, subscription)
    second = evaluate_catalog(shuffled, subscription)
    assert first == second
    assert [item.content_id for item, _ in first] == [item.content_id for item in shuffled]


def test_package_scoped_item_without_tier_opens_only_to_that_package():
    item = ContentItem(
        content_id="6",
        provider_id="provider-1",
        package_id="elite-pack",
        title="Elite program",
        content_type=ContentType.VIDEO,
        storage_ref="x",
    )
    member = make_subscription("basic").model_copy(update={"package_id": "basic-pack"})
    package_member = make_subscription("basic").model_copy(update={"package_id": "elite-pack"})

    assert is_accessible(item, member) is False
    assert is_accessible(item, make_subscription("elite")) is False
    assert is_accessible(item, package_member) is True
