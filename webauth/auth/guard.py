"""
Route guard for protected endpoints.

Usage in routes:
    @router.get("/profile")
    async def profile(credential: Credential = Depends(require_authentication)):
        ...

When no valid credential is present the dependency raises LoginRequired,
which the application turns into a redirect; the handler body never runs.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from webauth.auth.credentials import CredentialStore
from webauth.auth.dependencies import get_credential_store
from webauth.models import Credential

logger = logging.getLogger(__name__)

# Unauthenticated visitors are sent to the home page, which links to /login
LOGIN_REDIRECT = "/"


class LoginRequired(Exception):
    """Raised when a protected route is requested without a valid credential."""

    def __init__(self, redirect_to: str = LOGIN_REDIRECT) -> None:
        super().__init__("Authentication required")
        self.redirect_to = redirect_to


def check_authentication(request: Request, store: CredentialStore) -> Optional[Credential]:
    """
    Decide whether the request may proceed.

    Returns:
        The request's Credential (allow), or None (deny)
    """
    credential = store.load(request)
    if credential is None:
        logger.debug("No valid credential for %s", request.url.path)
    return credential


async def require_authentication(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
) -> Credential:
    """
    FastAPI dependency enforcing authentication.

    Raises:
        LoginRequired: If the request carries no valid, unexpired credential
    """
    credential = check_authentication(request, store)
    if credential is None:
        raise LoginRequired()
    return credential
