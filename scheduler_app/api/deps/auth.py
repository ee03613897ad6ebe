from typing import Optional

import structlog
from descope import AuthException, DescopeClient
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scheduler_app.core.config import settings
from scheduler_app.core.exceptions import Unauthorized

logger = structlog.get_logger(__name__)


def _build_descope_client() -> Optional[DescopeClient]:
    """Descope client, or None when Descope is not configured (tests/dev)."""
    if not settings.DESCOPE_PROJECT_ID:
        return None
    try:
        client = DescopeClient(
            project_id=settings.DESCOPE_PROJECT_ID,
            management_key=settings.DESCOPE_MANAGEMENT_KEY,
        )
        logger.info(
            "Descope client initialized in deps",
            project_id=settings.DESCOPE_PROJECT_ID[:4] + "***",
        )
        return client
    except Exception as e:
        logger.error("Failed to initialize Descope client in deps", error=str(e))
        return None


descope_client = _build_descope_client()

# HTTP Bearer token extractor; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def _unauthorized(message: str = None) -> HTTPException:
    error = Unauthorized(message)
    return HTTPException(
        status_code=error.status_code,
        detail=str(error),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Get the verified identity (email) of the caller.

    - In production: validates the Descope session token and reads its email claim
    - In test/dev: the bearer token itself is taken as the identity
    """
    if credentials is None or not credentials.credentials.strip():
        raise _unauthorized()

    token = credentials.credentials.strip()

    if not descope_client:
        return token

    try:
        jwt_response = descope_client.validate_session(token)
    except AuthException as e:
        logger.warning("Descope authentication error", error=str(e))
        raise _unauthorized("Authentication failed")

    nsec_claims = jwt_response.get("nsec", {}) or {}
    email = nsec_claims.get("email") or jwt_response.get("email")
    if not email:
        logger.error("Validated session carries no email claim")
        raise _unauthorized("Session has no verified identity")

    return email
