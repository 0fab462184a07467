"""
Authentication utilities for extracting caller information from API Gateway events.
"""
from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger

logger = Logger()


def get_all_caller_claims(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract all caller claims from API Gateway event context.

    When API Gateway uses a Cognito authorizer, it validates the JWT and
    exposes the claims in requestContext.authorizer.claims.

    Args:
        event: API Gateway event dictionary

    Returns:
        Dictionary of all JWT claims (empty when the request is anonymous)
    """
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    claims = authorizer.get("claims") or {}
    return claims if isinstance(claims, dict) else {}


def extract_caller_id_from_event(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract the caller id (sub claim) from the API Gateway event.

    Args:
        event: API Gateway event dictionary

    Returns:
        Caller id, or None if not found
    """
    caller_id = get_all_caller_claims(event).get("sub")
    if caller_id:
        logger.debug(f"Successfully extracted caller_id: {caller_id}")
        return caller_id
    logger.warning("No caller_id found in JWT claims")
    return None


def extract_caller_email_from_event(event: Dict[str, Any]) -> Optional[str]:
    email = get_all_caller_claims(event).get("email")
    if not email:
        logger.warning("No email found in JWT claims")
        return None
    return email
