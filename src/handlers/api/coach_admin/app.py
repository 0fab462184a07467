import json
import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import (
    BadRequestError,
    ServiceError,
    UnauthorizedError,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from decimal import Decimal
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, Optional

from coachgate.models.content import ContentType
from coachgate.models.errors import ProviderNotFoundError, UnknownTierError
from coachgate.models.membership import BrandingProfile
from coachgate.services.catalog_service import CatalogService
from coachgate.services.provider_service import ProviderService
from coachgate.utils.auth import extract_caller_email_from_event, extract_caller_id_from_event
from coachgate.utils.responses import register_error_handlers

# Initialize the logger
logger = Logger()

# Retrieve environment variables
CONTENT_TABLE_NAME = os.environ.get("CONTENT_TABLE_NAME", "cg-content-dev")
PROVIDER_TABLE_NAME = os.environ.get("PROVIDER_TABLE_NAME", "cg-providers-dev")
PACKAGE_TABLE_NAME = os.environ.get("PACKAGE_TABLE_NAME", "cg-packages-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


class RegisterProviderRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    slug: Optional[str] = None
    branding: Optional[BrandingProfile] = None


class RegisterContentRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content_type: ContentType
    storage_ref: str = Field(min_length=1)
    required_tier: Optional[str] = None
    package_id: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    sort_order: int = 0
    published: bool = False


class RegisterPackageRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    tier: str
    price: Decimal = Field(ge=0)
    description: Optional[str] = None
    sort_order: int = 0


class PublishRequest(BaseModel):
    published: bool


def _parse_body(model: type[BaseModel]) -> Any:
    try:
        return model(**(app.current_event.json_body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")


def _created(body: Dict[str, Any]) -> Response:
    return Response(
        status_code=201,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body),
    )


def _provider_service() -> ProviderService:
    return ProviderService(PROVIDER_TABLE_NAME, PACKAGE_TABLE_NAME)


def _require_provider(service: ProviderService) -> str:
    """
    The caller must be a registered provider account; returns its id.
    """
    caller_id = extract_caller_id_from_event(app.current_event.raw_event)
    if not caller_id:
        logger.error("No caller_id found in JWT token")
        raise UnauthorizedError("Authentication required")
    try:
        service.get_provider(caller_id)
    except ProviderNotFoundError:
        logger.warning(f"Caller {caller_id} is not a provider")
        raise ServiceError(403, "Only provider accounts can manage content")
    return caller_id


@app.post("/providers")
def register_provider() -> Response:
    """
    Register the caller as a provider
    Expected body: {"name": "...", "slug": "...", "branding": {...}}
    """
    caller_id = extract_caller_id_from_event(app.current_event.raw_event)
    if not caller_id:
        raise UnauthorizedError("Authentication required")
    request = _parse_body(RegisterProviderRequest)

    try:
        provider = _provider_service().register_provider(
            name=request.name,
            email=extract_caller_email_from_event(app.current_event.raw_event),
            slug=request.slug,
            branding=request.branding,
            provider_id=caller_id,
        )
    except ValueError as exc:
        raise BadRequestError(str(exc))
    return _created({"provider": provider.model_dump(mode="json")})


@app.post("/content")
def register_content() -> Response:
    """
    Save metadata of a file the provider uploaded to the content bucket
    """
    service = _provider_service()
    provider_id = _require_provider(service)
    request = _parse_body(RegisterContentRequest)

    try:
        content = CatalogService(CONTENT_TABLE_NAME, service).register_content(
            provider_id=provider_id,
            title=request.title,
            content_type=request.content_type,
            storage_ref=request.storage_ref,
            required_tier=request.required_tier,
            package_id=request.package_id,
            description=request.description,
            thumbnail_url=request.thumbnail_url,
            sort_order=request.sort_order,
            published=request.published,
        )
    except UnknownTierError as exc:
        raise BadRequestError(f"Invalid required_tier: {exc.label}")
    except ValueError as exc:
        raise BadRequestError(str(exc))
    return _created({"content": content.model_dump(mode="json")})


@app.put("/content/<content_id>/publish")
def publish_content(content_id: str) -> Dict[str, Any]:
    """
    Publish or unpublish one of the provider's items
    Expected body: {"published": true|false}
    """
    provider_id = _require_provider(_provider_service())
    request = _parse_body(PublishRequest)
    content = CatalogService(CONTENT_TABLE_NAME).set_published(provider_id, content_id, request.published)
    return {"content": content.model_dump(mode="json")}


@app.post("/packages")
def register_package() -> Response:
    """
    Create an unpublished package
    Expected body: {"name": "...", "tier": "basic|premium|elite", "price": 19.99}
    """
    service = _provider_service()
    provider_id = _require_provider(service)
    request = _parse_body(RegisterPackageRequest)

    try:
        package = service.register_package(
            provider_id=provider_id,
            name=request.name,
            tier=request.tier,
            price=request.price,
            description=request.description,
            sort_order=request.sort_order,
        )
    except UnknownTierError as exc:
        raise BadRequestError(f"Invalid tier: {exc.label}")
    return _created({"package": package.model_dump(mode="json")})


@app.put("/packages/<package_id>/publish")
def publish_package(package_id: str) -> Dict[str, Any]:
    service = _provider_service()
    provider_id = _require_provider(service)
    request = _parse_body(PublishRequest)
    package = service.set_package_published(provider_id, package_id, request.published)
    return {"package": package.model_dump(mode="json")}


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
