"""
Error responses shared by the API handlers.

Store failures are answered with a retryable 503, never with an empty or
locked result.
"""

import json
from typing import Any, Dict
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types

from coachgate.models.errors import (
    ContentNotFoundError,
    FetchError,
    PackageNotFoundError,
    PersistenceError,
    ProviderNotFoundError,
    ResolutionError,
    SubscriptionConflictError,
    SubscriptionNotFoundError,
    SubscriptionStateError,
    UnknownTierError,
)

logger = Logger()


def error_response(status_code: int, code: str, message: str, retryable: bool = False, **extra: Any) -> Response:
    body: Dict[str, Any] = {
        "error": code,
        "message": message,
        "retryable": retryable,
        **extra,
    }
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body, default=str),
    )


def register_error_handlers(app: APIGatewayRestResolver) -> None:
    """Map membership exceptions to HTTP responses on the given resolver."""

    @app.exception_handler(ResolutionError)
    def handle_resolution_error(exc: ResolutionError) -> Response:
        logger.error(f"Subscription resolution failed: {exc}")
        return error_response(
            503,
            "SUBSCRIPTION_UNAVAILABLE",
            "We could not check your membership right now. Please try again.",
            retryable=True,
        )

    @app.exception_handler(FetchError)
    def handle_fetch_error(exc: FetchError) -> Response:
        logger.error(f"Catalog fetch failed: {exc}")
        return error_response(
            503,
            "CONTENT_UNAVAILABLE",
            "We could not load this content right now. Please try again.",
            retryable=True,
        )

    @app.exception_handler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError) -> Response:
        logger.error(f"Store write failed: {exc}")
        return error_response(503, "STORE_UNAVAILABLE", str(exc), retryable=True)

    @app.exception_handler(UnknownTierError)
    def handle_unknown_tier(exc: UnknownTierError) -> Response:
        logger.error(f"Unknown tier label: {exc.label!r}")
        return error_response(500, "UNKNOWN_TIER", str(exc), tier=str(exc.label))

    @app.exception_handler(SubscriptionNotFoundError)
    def handle_subscription_not_found(exc: SubscriptionNotFoundError) -> Response:
        return error_response(404, "SUBSCRIPTION_NOT_FOUND", str(exc))

    @app.exception_handler(ProviderNotFoundError)
    def handle_provider_not_found(exc: ProviderNotFoundError) -> Response:
        return error_response(404, "PROVIDER_NOT_FOUND", str(exc))

    @app.exception_handler(ContentNotFoundError)
    def handle_content_not_found(exc: ContentNotFoundError) -> Response:
        return error_response(404, "CONTENT_NOT_FOUND", str(exc))

    @app.exception_handler(SubscriptionConflictError)
    def handle_conflict(exc: SubscriptionConflictError) -> Response:
        logger.warning(f"Subscription conflict: {exc}")
        return error_response(409, "SUBSCRIPTION_CONFLICT", str(exc))

    @app.exception_handler(SubscriptionStateError)
    def handle_state_error(exc: SubscriptionStateError) -> Response:
        logger.warning(f"Invalid subscription transition: {exc}")
        return error_response(409, "INVALID_SUBSCRIPTION_STATE", str(exc), status=exc.status)

    @app.exception_handler(PackageNotFoundError)
    def handle_package_not_found(exc: PackageNotFoundError) -> Response:
        return error_response(404, "PACKAGE_NOT_FOUND", str(exc))
