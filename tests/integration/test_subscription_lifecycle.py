import pytest
from moto import mock_aws

from coachgate.models.errors import (
    PersistenceError,
    SubscriptionConflictError,
    SubscriptionNotFoundError,
    SubscriptionStateError,
)
from coachgate.models.membership import SubscriptionStatus
from coachgate.models.tier import Tier
from coachgate.services.provider_service import ProviderService
from coachgate.services.subscription_service import SubscriptionService
from tests.fixtures.ddb import (
    create_package_table,
    create_provider_table,
    create_subscription_table,
    get_package_table_name,
    get_provider_table_name,
    get_subscription_table_name,
)


def make_service() -> SubscriptionService:
    create_subscription_table()
    return SubscriptionService(get_subscription_table_name())


@mock_aws
def test_register_active_subscription():
    service = make_service()

    subscription = service.register_subscription("caller-1", "provider-1", tier="premium")

    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.current_period_end > subscription.current_period_start
    resolved = service.resolve_active_subscription("caller-1", "provider-1")
    assert resolved.subscription_id == subscription.subscription_id
    assert resolved.tier == Tier.PREMIUM


@mock_aws
def test_second_active_registration_conflicts():
    service = make_service()
    service.register_subscription("caller-1", "provider-1", tier="basic")

    with pytest.raises(SubscriptionConflictError):
        service.register_subscription("caller-1", "provider-1", tier="elite")

    # Another provider is independent
    service.register_subscription("caller-1", "provider-2", tier="elite")


@mock_aws
def test_pending_checkout_is_activated():
    service = make_service()
    pending = service.register_subscription(
        "caller-1", "provider-1", tier="elite", status=SubscriptionStatus.PENDING
    )
    assert service.resolve_active_subscription("caller-1", "provider-1") is None

    activated = service.activate_subscription(pending.subscription_id)

    assert activated.status == SubscriptionStatus.ACTIVE
    assert activated.current_period_start is not None
    stored = service.get_subscription(pending.subscription_id)
    assert stored.status == SubscriptionStatus.ACTIVE

    with pytest.raises(SubscriptionStateError):
        service.activate_subscription(pending.subscription_id)


@mock_aws
def test_change_tier():
    service = make_service()
    subscription = service.register_subscription("caller-1", "provider-1", tier="basic")

    changed = service.change_tier(subscription.subscription_id, "elite")

    assert changed.tier == Tier.ELITE
    assert service.get_subscription(subscription.subscription_id).tier == Tier.ELITE
    with pytest.raises(SubscriptionConflictError):
        service.change_tier(subscription.subscription_id, "elite")


@mock_aws
def test_cancel_keeps_the_row():
    service = make_service()
    subscription = service.register_subscription("caller-1", "provider-1", tier="premium")

    cancelled = service.cancel_subscription(subscription.subscription_id)

    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert service.resolve_active_subscription("caller-1", "provider-1") is None
    history = service.list_subscriptions("caller-1", "provider-1")
    assert [s.status for s in history] == [SubscriptionStatus.CANCELLED]

    with pytest.raises(SubscriptionStateError):
        service.cancel_subscription(subscription.subscription_id)
    with pytest.raises(SubscriptionStateError):
        service.change_tier(subscription.subscription_id, "basic")

    # A fresh subscription is allowed after cancelling
    service.register_subscription("caller-1", "provider-1", tier="basic")
    assert len(service.list_subscriptions("caller-1", "provider-1")) == 2


@mock_aws
def test_unknown_subscription():
    service = make_service()
    with pytest.raises(SubscriptionNotFoundError):
        service.get_subscription("missing")


@mock_aws
def test_cancelled_status_cannot_be_registered():
    service = make_service()
    with pytest.raises(ValueError):
        service.register_subscription("caller-1", "provider-1", tier="basic", status=SubscriptionStatus.CANCELLED)


@mock_aws
def test_register_from_package():
    create_subscription_table()
    create_provider_table()
    create_package_table()
    provider_service = ProviderService(get_provider_table_name(), get_package_table_name())
    provider_service.register_provider("Anna's Gym", provider_id="provider-1")
    provider_service.register_provider("Bob's Box", provider_id="provider-2")
    package = provider_service.register_package("provider-1", "Premium coaching", "premium", "19.99")
    service = SubscriptionService(get_subscription_table_name(), provider_service)

    subscription = service.register_subscription("caller-1", "provider-1", package_id=package.package_id)
    assert subscription.tier == Tier.PREMIUM
    assert subscription.package_id == package.package_id

    with pytest.raises(ValueError):
        service.register_subscription("caller-1", "provider-2", package_id=package.package_id)
    with pytest.raises(ValueError):
        service.register_subscription("caller-1", "provider-2", package_id="missing")


@mock_aws
def test_explicit_tier_must_agree_with_package():
    create_subscription_table()
    create_provider_table()
    create_package_table()
    provider_service = ProviderService(get_provider_table_name(), get_package_table_name())
    provider_service.register_provider("Anna's Gym", provider_id="provider-1")
    provider_service.register_provider("Bob's Box", provider_id="provider-2")
    basic = provider_service.register_package("provider-1", "Basic", "basic", "9.99")
    foreign = provider_service.register_package("provider-2", "Basic", "basic", "9.99")
    service = SubscriptionService(get_subscription_table_name(), provider_service)

    with pytest.raises(ValueError):
        service.register_subscription("caller-1", "provider-1", tier="elite", package_id=basic.package_id)
    with pytest.raises(ValueError):
        service.register_subscription("caller-1", "provider-1", tier="basic", package_id=foreign.package_id)
    assert service.resolve_active_subscription("caller-1", "provider-1") is None

    subscription = service.register_subscription("caller-1", "provider-1", tier="Basic", package_id=basic.package_id)
    assert subscription.tier == Tier.BASIC


@mock_aws
def test_transitions_work_on_rows_stored_with_other_spellings():
    table = create_subscription_table()
    table.put_item(
        Item={
            "subscription_id": "legacy",
            "caller_id": "caller-1",
            "provider_id": "provider-1",
            "caller_provider": "caller-1#provider-1",
            "tier": "pro",
            "status": "Active",
            "created_at": "2026-01-01T00:00:00Z",
            "updated_at": "2026-01-01T00:00:00Z",
        }
    )
    service = SubscriptionService(get_subscription_table_name())

    cancelled = service.cancel_subscription("legacy")

    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert service.get_subscription("legacy").status == SubscriptionStatus.CANCELLED


@mock_aws
def test_malformed_row_is_a_persistence_error():
    table = create_subscription_table()
    table.put_item(Item={"subscription_id": "broken", "caller_id": "caller-1", "provider_id": "provider-1"})
    service = SubscriptionService(get_subscription_table_name())

    with pytest.raises(PersistenceError):
        service.get_subscription("broken")
    with pytest.raises(PersistenceError):
        service.cancel_subscription("broken")
