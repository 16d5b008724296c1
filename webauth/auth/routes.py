"""
Authentication routes for the OIDC login, callback and logout steps.

Paths are registered with the identity provider (callback URL, allowed
logout URL) and must stay stable.
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from webauth.auth.credentials import CredentialStore
from webauth.auth.dependencies import get_credential_store, get_flow, get_optional_flow
from webauth.auth.errors import AuthFlowError, LogoutURLError
from webauth.auth.flow import AuthorizationFlow
from webauth.auth.state import Session, get_session

logger = logging.getLogger(__name__)

PROFILE_PATH = "/profile"


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    tags=["authentication"],
)


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/login", response_class=RedirectResponse)
async def login(
    session: Session = Depends(get_session),
    flow: AuthorizationFlow = Depends(get_flow),
):
    """
    Initiate the login flow by redirecting to the provider.

    A fresh state value is stored for this session before redirecting. If no
    state can be generated the request fails with 500 and no redirect is
    issued.
    """
    authorization_url = flow.initiate(session)
    return RedirectResponse(url=authorization_url, status_code=307)


# =============================================================================
# Callback Endpoint
# =============================================================================

@auth_router.get("/callback", response_class=RedirectResponse)
async def callback(
    session: Session = Depends(get_session),
    flow: AuthorizationFlow = Depends(get_flow),
    store: CredentialStore = Depends(get_credential_store),
    code: Optional[str] = Query(None, description="Authorization code from the provider"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
):
    """
    Handle the provider redirect.

    Verifies state, exchanges the code, validates the token and fetches the
    profile. Only when every step succeeds is the credential cookie written
    and the browser sent to the profile page. Failures are raised as
    AuthFlowError and rendered by the application's error handler.
    """
    credential = await flow.complete(
        session,
        state=state,
        code=code,
        error=error,
        error_description=error_description,
    )

    response = RedirectResponse(url=PROFILE_PATH, status_code=307)
    store.store(response, credential)
    return response


# =============================================================================
# Logout Endpoint
# =============================================================================

@auth_router.get("/logout", response_class=RedirectResponse)
async def logout(
    request: Request,
    session: Session = Depends(get_session),
    flow: Optional[AuthorizationFlow] = Depends(get_optional_flow),
    store: CredentialStore = Depends(get_credential_store),
):
    """
    Log out locally, then at the provider.

    The credential cookie and session are cleared on every path. If the
    provider logout URL cannot be built, a local error page is shown instead
    of the redirect.
    """
    session.clear()

    return_to = f"{request.url.scheme}://{request.headers.get('host', '')}"
    try:
        if flow is None:
            raise LogoutURLError("Provider not discovered yet")
        response = RedirectResponse(url=flow.logout_url(return_to), status_code=307)
    except LogoutURLError as e:
        logger.error("Could not build provider logout URL: %s", e)
        response = render_error_page(e)

    store.clear(response)
    return response


# =============================================================================
# HTML Response Templates
# =============================================================================

def render_error_page(exc: AuthFlowError) -> HTMLResponse:
    """
    Render a generic error page for a flow failure.

    Only the error's public title and message are shown; internal details
    stay in the logs.
    """
    title = html.escape(exc.title)
    message = html.escape(exc.public_message)

    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
</head>
<body>
    <h1>{title}</h1>
    <p>{message}</p>
    <p><a href="/login">Try again</a> or <a href="/">return home</a>.</p>
</body>
</html>
"""
    return HTMLResponse(content=html_content, status_code=exc.status_code)
