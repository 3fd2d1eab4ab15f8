"""
Cron request authorisation.
"""
import hmac
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .exceptions import AuthenticationException
from .logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


def is_authorized(
    settings: Settings,
    token: Optional[str],
    identity_header: Optional[str],
) -> bool:
    """
    A cron request is authorised by any of:

    - a bearer token equal to CRON_SECRET (constant-time compare)
    - the scheduler identity header set to "1"
    - the development environment
    """
    if settings.cron_secret and token and hmac.compare_digest(token.encode(), settings.cron_secret.encode()):
        return True
    if identity_header == "1":
        return True
    return settings.is_development


async def verify_cron(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject unauthorised cron requests before any work is done."""
    token = credentials.credentials if credentials else None
    identity = request.headers.get(settings.cron_identity_header)
    if not is_authorized(settings, token, identity):
        logger.warning("Unauthorised cron request", path=request.url.path)
        raise AuthenticationException()
