"""
Member view orchestration.

Runs the resolver, the catalog fetcher, the evaluator and the render gate for
one request. All state flows through the MemberContext argument.
"""

from typing import Optional
from aws_lambda_powertools import Logger

from coachgate.models.content import ContentType, MemberView
from coachgate.models.context import MemberContext, NoSubscriptionPolicy
from coachgate.services.catalog_service import CatalogService
from coachgate.services.entitlement import evaluate_catalog
from coachgate.services.render_gate import ObjectUrlSigner, render_card
from coachgate.services.subscription_service import SubscriptionService

logger = Logger()


def resolve_context(context: MemberContext, subscription_service: SubscriptionService) -> MemberContext:
    """Attach the caller's active subscription, resolving it at most once per context."""
    if context.subscription_resolved:
        return context
    subscription = subscription_service.resolve_active_subscription(
        context.caller_id, context.provider_id
    )
    return context.with_subscription(subscription)


def build_member_view(
    context: MemberContext,
    subscription_service: SubscriptionService,
    catalog_service: CatalogService,
    url_signer: Optional[ObjectUrlSigner] = None,
    policy: NoSubscriptionPolicy = NoSubscriptionPolicy.UPGRADE_PROMPT,
    content_type: Optional[ContentType | str] = None,
) -> MemberView:
    """
    Build the tier-gated catalog of a provider for the caller.

    ResolutionError, FetchError and UnknownTierError propagate unchanged so
    the caller can report them; they are never turned into locked cards.
    """
    context = resolve_context(context, subscription_service)
    subscription = context.subscription

    view = MemberView(
        provider_id=context.provider_id,
        caller_id=context.caller_id,
        subscription_tier=subscription.tier if subscription else None,
        subscription_status=subscription.status.value if subscription else None,
    )

    if subscription is None and policy == NoSubscriptionPolicy.HIDE:
        logger.info(f"Hiding catalog of {context.provider_id} from unsubscribed caller {context.caller_id}")
        view.section_hidden = True
        return view

    items = catalog_service.fetch_published_content(context.provider_id, content_type=content_type)
    view.cards = [
        render_card(item, accessible, url_signer)
        for item, accessible in evaluate_catalog(items, subscription)
    ]
    logger.info(
        f"Built member view of {context.provider_id} for {context.caller_id}: "
        f"{view.unlocked_count}/{len(view.cards)} unlocked"
    )
    return view
