import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.utilities.typing import LambdaContext
from typing import Any, Dict

from coachgate.services.provider_service import ProviderService
from coachgate.utils.responses import register_error_handlers

# Initialize the logger
logger = Logger()

# Retrieve environment variables
PROVIDER_TABLE_NAME = os.environ.get("PROVIDER_TABLE_NAME", "cg-providers-dev")
PACKAGE_TABLE_NAME = os.environ.get("PACKAGE_TABLE_NAME", "cg-packages-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


def _provider_service() -> ProviderService:
    return ProviderService(PROVIDER_TABLE_NAME, PACKAGE_TABLE_NAME)


# Registered before /providers/<provider_id>/packages so a slug never reads as an id
@app.get("/providers/by-slug/<slug>")
def get_provider_by_slug(slug: str) -> Dict[str, Any]:
    """
    Public provider profile by slug (subdomain routing)
    """
    provider = _provider_service().get_provider_by_slug(slug)
    return {"provider": provider.model_dump(mode="json", exclude={"email"})}


@app.get("/providers/<provider_id>")
def get_provider(provider_id: str) -> Dict[str, Any]:
    """
    Public provider profile
    """
    provider = _provider_service().get_provider(provider_id)
    return {"provider": provider.model_dump(mode="json", exclude={"email"})}


@app.get("/providers/<provider_id>/packages")
def list_packages(provider_id: str) -> Dict[str, Any]:
    """
    Published packages of a provider in display order
    """
    service = _provider_service()
    service.get_provider(provider_id)
    packages = service.list_published_packages(provider_id)
    return {
        "provider_id": provider_id,
        "packages": [package.model_dump(mode="json") for package in packages],
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
