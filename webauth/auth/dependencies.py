"""
FastAPI dependencies that hand the shared auth components to route handlers.
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from webauth.auth.credentials import CredentialStore
from webauth.auth.flow import AuthorizationFlow


def _app_state(request: Request, require_flow: bool = True):
    app_state = getattr(request.app.state, "app_state", None)
    if app_state is None or (require_flow and app_state.flow is None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service not initialized",
        )
    return app_state


def get_flow(request: Request) -> AuthorizationFlow:
    """Dependency returning the application's AuthorizationFlow."""
    return _app_state(request).flow


def get_optional_flow(request: Request) -> Optional[AuthorizationFlow]:
    """Like get_flow, but None while the provider is not yet discovered."""
    app_state = getattr(request.app.state, "app_state", None)
    return app_state.flow if app_state is not None else None


def get_credential_store(request: Request) -> CredentialStore:
    """
    Dependency returning the application's CredentialStore.

    The store is built with the app, so it is available before startup
    completes and logout can always clear the cookie.
    """
    return _app_state(request, require_flow=False).credential_store
