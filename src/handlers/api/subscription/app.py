import json
import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, ValidationError, model_validator
from typing import Any, Dict, Optional

from coachgate.constants.tiers import (
    BASIC_DESCRIPTION, BASIC_NAME, BASIC_PRICE_EUR,
    PREMIUM_DESCRIPTION, PREMIUM_NAME, PREMIUM_PRICE_EUR,
    ELITE_DESCRIPTION, ELITE_NAME, ELITE_PRICE_EUR,
    BILLING_INTERVAL, CURRENCY, CURRENCY_SYMBOL, DEFAULT_PERIOD_DAYS,
)
from coachgate.models.errors import SubscriptionNotFoundError, UnknownTierError
from coachgate.models.membership import Subscription, SubscriptionStatus
from coachgate.models.tier import Tier
from coachgate.services.provider_service import ProviderService
from coachgate.services.subscription_service import SubscriptionService
from coachgate.utils.auth import extract_caller_id_from_event
from coachgate.utils.responses import register_error_handlers

# Initialize the logger
logger = Logger()

# Retrieve environment variables
SUBSCRIPTION_TABLE_NAME = os.environ.get("SUBSCRIPTION_TABLE_NAME", "cg-subscriptions-dev")
PROVIDER_TABLE_NAME = os.environ.get("PROVIDER_TABLE_NAME", "cg-providers-dev")
PACKAGE_TABLE_NAME = os.environ.get("PACKAGE_TABLE_NAME", "cg-packages-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


class RegisterSubscriptionRequest(BaseModel):
    tier: Optional[str] = None
    package_id: Optional[str] = None
    checkout: bool = False  # record a pending checkout intent instead of activating

    @model_validator(mode="after")
    def tier_or_package(self):
        if not self.tier and not self.package_id:
            raise ValueError("Either tier or package_id is required")
        return self


class ChangeTierRequest(BaseModel):
    tier: str


def _subscription_service() -> SubscriptionService:
    provider_service = ProviderService(PROVIDER_TABLE_NAME, PACKAGE_TABLE_NAME)
    return SubscriptionService(SUBSCRIPTION_TABLE_NAME, provider_service)


def _require_caller() -> str:
    caller_id = extract_caller_id_from_event(app.current_event.raw_event)
    if not caller_id:
        logger.error("No caller_id found in JWT token")
        raise UnauthorizedError("Authentication required")
    return caller_id


def _parse_request_tier(label: Optional[str]) -> Optional[Tier]:
    if label is None:
        return None
    try:
        return Tier.parse(label)
    except UnknownTierError as exc:
        raise BadRequestError(f"Invalid tier: {label}. Must be one of {[t.value for t in Tier]}") from exc


def _owned_subscription(service: SubscriptionService, subscription_id: str, caller_id: str) -> Subscription:
    subscription = service.get_subscription(subscription_id)
    if subscription.caller_id != caller_id:
        # Do not reveal other callers' subscriptions
        logger.warning(f"Caller {caller_id} attempted to access subscription {subscription_id}")
        raise SubscriptionNotFoundError(subscription_id)
    return subscription


@app.get("/providers/<provider_id>/subscription")
def get_subscription(provider_id: str) -> Dict[str, Any]:
    """
    Caller's active subscription at a provider
    """
    caller_id = _require_caller()
    subscription = _subscription_service().resolve_active_subscription(caller_id, provider_id)
    return {
        "has_active_subscription": subscription is not None,
        "subscription": subscription.model_dump(mode="json") if subscription else None,
    }


@app.post("/providers/<provider_id>/subscription")
def register_subscription(provider_id: str) -> Response:
    """
    Subscribe the caller to a provider
    Expected body: {"tier": "basic|premium|elite"} or {"package_id": "..."}, optional "checkout": true
    """
    caller_id = _require_caller()
    try:
        request = RegisterSubscriptionRequest(**(app.current_event.json_body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    tier = _parse_request_tier(request.tier)
    service = _subscription_service()
    # The provider must exist before anyone can subscribe to it
    service.provider_service.get_provider(provider_id)
    try:
        subscription = service.register_subscription(
            caller_id,
            provider_id,
            tier=tier,
            package_id=request.package_id,
            status=SubscriptionStatus.PENDING if request.checkout else SubscriptionStatus.ACTIVE,
        )
    except ValueError as exc:
        raise BadRequestError(str(exc))

    return Response(
        status_code=201,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps({"subscription": subscription.model_dump(mode="json")}),
    )


@app.put("/subscriptions/<subscription_id>/tier")
def change_tier(subscription_id: str) -> Dict[str, Any]:
    """
    Change the tier of the caller's active subscription
    Expected body: {"tier": "basic|premium|elite"}
    """
    caller_id = _require_caller()
    try:
        request = ChangeTierRequest(**(app.current_event.json_body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    tier = _parse_request_tier(request.tier)
    service = _subscription_service()
    _owned_subscription(service, subscription_id, caller_id)
    subscription = service.change_tier(subscription_id, tier)
    return {
        "message": f"Successfully changed plan to {tier.value}",
        "subscription": subscription.model_dump(mode="json"),
    }


@app.post("/subscriptions/<subscription_id>/cancel")
def cancel_subscription(subscription_id: str) -> Dict[str, Any]:
    """
    Cancel the caller's subscription
    """
    caller_id = _require_caller()
    service = _subscription_service()
    _owned_subscription(service, subscription_id, caller_id)
    subscription = service.cancel_subscription(subscription_id)
    return {
        "message": "Subscription cancelled",
        "subscription": subscription.model_dump(mode="json"),
    }


@app.get("/tiers")
def get_pricing() -> Dict[str, Any]:
    """
    Tier ladder and pricing
    """
    return {
        "tiers": {
            Tier.BASIC.value: {
                "name": BASIC_NAME,
                "rank": Tier.BASIC.rank,
                "price": BASIC_PRICE_EUR,
                "currency": CURRENCY,
                "interval": BILLING_INTERVAL,
                "description": BASIC_DESCRIPTION,
            },
            Tier.PREMIUM.value: {
                "name": PREMIUM_NAME,
                "rank": Tier.PREMIUM.rank,
                "price": PREMIUM_PRICE_EUR,
                "currency": CURRENCY,
                "interval": BILLING_INTERVAL,
                "description": PREMIUM_DESCRIPTION,
                "popular": True,
            },
            Tier.ELITE.value: {
                "name": ELITE_NAME,
                "rank": Tier.ELITE.rank,
                "price": ELITE_PRICE_EUR,
                "currency": CURRENCY,
                "interval": BILLING_INTERVAL,
                "description": ELITE_DESCRIPTION,
            },
        },
        "currency_symbol": CURRENCY_SYMBOL,
        "period_days": DEFAULT_PERIOD_DAYS,
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
