import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from typing import Any, Dict

from coachgate.constants.tiers import DEFAULT_SIGNED_URL_TTL_SECONDS
from coachgate.models.content import ContentType
from coachgate.models.context import MemberContext, NoSubscriptionPolicy
from coachgate.services.catalog_service import CatalogService
from coachgate.services.member_view import build_member_view
from coachgate.services.provider_service import ProviderService
from coachgate.services.render_gate import ObjectUrlSigner
from coachgate.services.subscription_service import SubscriptionService
from coachgate.utils.auth import extract_caller_email_from_event, extract_caller_id_from_event
from coachgate.utils.responses import register_error_handlers

# Initialize the logger
logger = Logger()

# Retrieve environment variables
SUBSCRIPTION_TABLE_NAME = os.environ.get("SUBSCRIPTION_TABLE_NAME", "cg-subscriptions-dev")
CONTENT_TABLE_NAME = os.environ.get("CONTENT_TABLE_NAME", "cg-content-dev")
PROVIDER_TABLE_NAME = os.environ.get("PROVIDER_TABLE_NAME", "cg-providers-dev")
PACKAGE_TABLE_NAME = os.environ.get("PACKAGE_TABLE_NAME", "cg-packages-dev")
CONTENT_BUCKET_NAME = os.environ.get("CONTENT_BUCKET_NAME", "cg-content-dev")
SIGNED_URL_TTL_SECONDS = int(os.environ.get("SIGNED_URL_TTL_SECONDS", DEFAULT_SIGNED_URL_TTL_SECONDS))
NO_SUBSCRIPTION_POLICY = NoSubscriptionPolicy.from_setting(os.environ.get("NO_SUBSCRIPTION_POLICY"))

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


@app.get("/providers/<provider_id>/content")
def get_member_content(provider_id: str) -> Dict[str, Any]:
    """
    Provider catalog gated by the caller's subscription tier.
    Optional query parameter: type=video|document|image|text
    """
    caller_id = extract_caller_id_from_event(app.current_event.raw_event)
    if not caller_id:
        logger.error("No caller_id found in JWT token")
        raise UnauthorizedError("Authentication required")

    content_type = app.current_event.get_query_string_value(name="type", default_value=None)
    if content_type and content_type not in {t.value for t in ContentType}:
        raise BadRequestError(f"Invalid content type: {content_type}")

    provider_service = ProviderService(PROVIDER_TABLE_NAME, PACKAGE_TABLE_NAME)
    provider = provider_service.get_provider(provider_id)

    context = MemberContext(
        caller_id=caller_id,
        provider_id=provider.provider_id,
        email=extract_caller_email_from_event(app.current_event.raw_event),
    )
    view = build_member_view(
        context,
        subscription_service=SubscriptionService(SUBSCRIPTION_TABLE_NAME, provider_service),
        catalog_service=CatalogService(CONTENT_TABLE_NAME, provider_service),
        url_signer=ObjectUrlSigner(CONTENT_BUCKET_NAME, SIGNED_URL_TTL_SECONDS),
        policy=NO_SUBSCRIPTION_POLICY,
        content_type=content_type,
    )

    return {
        "provider": {
            "provider_id": provider.provider_id,
            "name": provider.name,
            "branding": provider.branding.model_dump(mode="json"),
        },
        "member_view": view.model_dump(mode="json"),
        "sections": {
            section: [card.model_dump(mode="json") for card in cards]
            for section, cards in view.cards_by_type().items()
        },
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    logger.info(f"Received {event.get('httpMethod')} {event.get('path')}")

    return app.resolve(event, context)
