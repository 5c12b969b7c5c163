"""
Authentication for the FastAPI API.

Admin endpoints take one of the configured API keys, the cron endpoint
takes the shared cron secret. Both arrive as a Bearer token.
"""

import secrets

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from utilities.config import config

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer()


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """
    Verify an admin API key from the request.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        API key if valid

    Raises:
        HTTPException: If the API key is invalid
    """
    api_key = credentials.credentials

    if api_key not in config.get_api_keys():
        logger.warning("Invalid API key attempted", api_key=api_key[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return api_key


async def verify_cron_secret(credentials: HTTPAuthorizationCredentials = Depends(security)) -> None:
    """
    Verify the cron trigger secret.

    Raises:
        HTTPException: If no secret is configured or the token does not match
    """
    if not config.cron_secret:
        logger.error("Cron trigger rejected, CRON_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron trigger is not configured",
        )

    if not secrets.compare_digest(credentials.credentials, config.cron_secret):
        logger.warning("Invalid cron secret attempted")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
