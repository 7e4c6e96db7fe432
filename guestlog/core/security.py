"""
Admin Authorization

The customer list is an admin view. Access is decided by an authorizer
collaborator before any query runs; the default implementation compares a
bearer token against ADMIN_API_TOKEN.

Usage:
    @app.get("/customers", dependencies=[Depends(require_admin)])
"""

import hmac
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from guestlog.core.config import get_settings
from guestlog.core.exceptions import AuthorizationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class AdminAuthorizer:
    """Validates admin bearer tokens against a configured secret."""

    def __init__(self, token: Optional[str]):
        self._token = token
        if not token:
            logger.warning("No admin token configured - admin endpoints will deny every request")

    def is_authorized(self, credential: Optional[str]) -> bool:
        if not self._token or not credential:
            return False
        return hmac.compare_digest(credential.encode(), self._token.encode())


@lru_cache()
def get_authorizer() -> AdminAuthorizer:
    """Get the configured authorizer instance."""
    return AdminAuthorizer(get_settings().admin_api_token)


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    authorizer: AdminAuthorizer = Depends(get_authorizer),
) -> None:
    """
    FastAPI dependency that rejects requests without a valid admin token.

    Raises:
        AuthorizationError: If the Authorization header is missing or wrong
    """
    credential = credentials.credentials if credentials else None
    if not authorizer.is_authorized(credential):
        logger.info("Rejected admin request (%s)", "bad token" if credential else "no token")
        raise AuthorizationError("Admin credential required")
