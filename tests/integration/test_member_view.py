from unittest.mock import MagicMock

import pytest
from moto import mock_aws

from coachgate.models.content import CardAction
from coachgate.models.context import MemberContext, NoSubscriptionPolicy
from coachgate.models.errors import FetchError, ResolutionError
from coachgate.services.catalog_service import CatalogService
from coachgate.services.member_view import build_member_view, resolve_context
from coachgate.services.render_gate import ObjectUrlSigner
from coachgate.services.subscription_service import SubscriptionService
from tests.fixtures.ddb import (
    create_content_bucket,
    create_content_table,
    create_subscription_table,
    get_content_table_name,
    get_subscription_table_name,
)


def seed_catalog(catalog_service: CatalogService) -> None:
    for sort_order, (title, tier, content_type) in enumerate(
        [
            ("Warm-up", "basic", "video"),
            ("Meal plan", "premium", "document"),
            ("1:1 review", "elite", "video"),
            ("Welcome", None, "text"),
        ]
    ):
        catalog_service.register_content(
            provider_id="provider-1",
            title=title,
            content_type=content_type,
            storage_ref=f"provider-1/{sort_order}",
            required_tier=tier,
            sort_order=sort_order,
            published=True,
        )


@mock_aws
def test_premium_member_view():
    create_subscription_table()
    create_content_table()
    bucket = create_content_bucket()
    subscriptions = SubscriptionService(get_subscription_table_name())
    catalog = CatalogService(get_content_table_name())
    seed_catalog(catalog)
    subscriptions.register_subscription("caller-1", "provider-1", tier="premium")

    view = build_member_view(
        MemberContext(caller_id="caller-1", provider_id="provider-1"),
        subscriptions,
        catalog,
        url_signer=ObjectUrlSigner(bucket, ttl_seconds=60),
    )

    assert [card.title for card in view.cards] == ["Warm-up", "Meal plan", "1:1 review", "Welcome"]
    assert [card.locked for card in view.cards] == [False, False, True, False]
    assert view.unlocked_count == 3
    assert view.cards[1].action == CardAction.DOWNLOAD
    assert bucket in view.cards[0].url
    assert view.cards[2].url is None


@mock_aws
def test_unsubscribed_caller_sees_locked_catalog_by_default():
    create_subscription_table()
    create_content_table()
    catalog = CatalogService(get_content_table_name())
    seed_catalog(catalog)

    view = build_member_view(
        MemberContext(caller_id="caller-1", provider_id="provider-1"),
        SubscriptionService(get_subscription_table_name()),
        catalog,
    )

    assert view.section_hidden is False
    assert len(view.cards) == 4
    assert view.unlocked_count == 0
    assert all(card.action == CardAction.UPGRADE for card in view.cards)


def test_hide_policy_skips_catalog():
    subscriptions = MagicMock(spec=SubscriptionService)
    subscriptions.resolve_active_subscription.return_value = None
    catalog = MagicMock(spec=CatalogService)

    view = build_member_view(
        MemberContext(caller_id="caller-1", provider_id="provider-1"),
        subscriptions,
        catalog,
        policy=NoSubscriptionPolicy.HIDE,
    )

    assert view.section_hidden is True
    assert view.cards == []
    catalog.fetch_published_content.assert_not_called()


def test_errors_propagate_instead_of_locking():
    subscriptions = MagicMock(spec=SubscriptionService)
    subscriptions.resolve_active_subscription.side_effect = ResolutionError("caller-1", "provider-1", "timeout")
    catalog = MagicMock(spec=CatalogService)

    with pytest.raises(ResolutionError):
        build_member_view(MemberContext(caller_id="caller-1", provider_id="provider-1"), subscriptions, catalog)

    subscriptions.resolve_active_subscription.side_effect = None
    subscriptions.resolve_active_subscription.return_value = None
    catalog.fetch_published_content.side_effect = FetchError("provider-1", "timeout")
    with pytest.raises(FetchError):
        build_member_view(MemberContext(caller_id="caller-1", provider_id="provider-1"), subscriptions, catalog)


def test_context_is_resolved_once():
    subscriptions = MagicMock(spec=SubscriptionService)
    subscriptions.resolve_active_subscription.return_value = None
    context = resolve_context(MemberContext(caller_id="caller-1", provider_id="provider-1"), subscriptions)

    assert resolve_context(context, subscriptions) is context
    subscriptions.resolve_active_subscription.assert_called_once_with("caller-1", "provider-1")
