"""
FastAPI Login Server Application Factory
========================================

Entry point for the login server: a browser-facing service that signs users
in through an OpenID Connect provider and guards the profile page.

Architecture:
    Browser → Login Server (this service) → Identity Provider

Routers:
    - /login, /callback, /logout : Authorization code flow
    - /profile                   : Protected resource (route guard)
    - /, /ping, /health          : Service endpoints

Environment Variables Required:
    - AUTH0_DOMAIN: Provider tenant domain
    - AUTH0_CLIENT_ID / AUTH0_CLIENT_SECRET: Client registration
    - AUTH0_CALLBACK_URL: Registered redirect URI (ends in /callback)
    - SESSION_SECRET: Secret for the signed session cookie
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn webauth.main:create_app --factory --reload --port 9090

    Production:
        uvicorn webauth.main:create_app --factory --host 0.0.0.0 --port 9090 --workers 4
        (use STATE_STORE_BACKEND=session with multiple workers)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from webauth.auth.credentials import CredentialStore, EncryptedCookieCredentialStore
from webauth.auth.discovery import ProviderConfig, discover_provider
from webauth.auth.errors import AuthFlowError
from webauth.auth.flow import AuthorizationFlow
from webauth.auth.guard import LoginRequired, check_authentication
from webauth.auth.routes import auth_router, render_error_page
from webauth.auth.state import InMemoryStateStore, SessionStateStore, StateStore
from webauth.auth.tokens import generate_state
from webauth.config import Settings, get_settings
from webauth.models import ErrorResponse, HealthResponse
from webauth.profile.routes import profile_router

SERVICE_NAME = "webauth"
SERVICE_VERSION = "1.0.0"

security_logger = logging.getLogger("webauth.security")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Application state container.

    Holds the shared, read-only resources built at startup.
    """
    def __init__(self, settings: Settings, credential_store: CredentialStore):
        self.settings = settings
        self.credential_store = credential_store
        self.http_client: Optional[httpx.AsyncClient] = None
        self.provider: Optional[ProviderConfig] = None
        self.flow: Optional[AuthorizationFlow] = None


def build_state_store(settings: Settings) -> StateStore:
    """Select the pending-state backend named in settings."""
    if settings.STATE_STORE_BACKEND == "memory":
        return InMemoryStateStore(ttl_seconds=settings.STATE_TTL_SECONDS)
    return SessionStateStore()


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[ProviderConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    state_store: Optional[StateStore] = None,
    token_generator: Callable[[], str] = generate_state,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management (HTTP client, provider discovery)
        - Session middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Settings to use instead of the environment
        provider: Pre-resolved provider config; skips discovery when given
        transport: Transport for the outbound HTTP client
        state_store: State store to use instead of the configured backend
        token_generator: Source of state values

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    credential_store = EncryptedCookieCredentialStore(
        key=settings.credential_key,
        cookie_name=settings.CREDENTIAL_COOKIE_NAME,
        ttl_seconds=settings.CREDENTIAL_TTL_SECONDS,
        secure=settings.COOKIE_SECURE,
        domain=settings.COOKIE_DOMAIN,
    )
    app_state = AppState(settings, credential_store)
    if state_store is None:
        state_store = build_state_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup: configure logging, open the shared HTTP client, discover
        the provider and build the orchestrator.
        Shutdown: close the HTTP client.
        """
        setup_logging(settings.LOG_LEVEL)
        logger = logging.getLogger("webauth.main")

        app_state.http_client = httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        try:
            app_state.provider = provider or await discover_provider(app_state.http_client, settings)
            app_state.flow = AuthorizationFlow(
                app_state.provider,
                app_state.http_client,
                state_store,
                token_generator=token_generator,
                credential_ttl_seconds=settings.CREDENTIAL_TTL_SECONDS,
            )

            logger.info(
                "Login server started",
                extra={
                    "service": SERVICE_NAME,
                    "provider": settings.AUTH0_DOMAIN,
                    "state_store": type(state_store).__name__,
                },
            )

            yield
        finally:
            await app_state.http_client.aclose()
            app_state.flow = None
            logger.info("Login server shutdown complete")

    app = FastAPI(
        title="Login Server",
        description="OAuth 2.0 / OpenID Connect login with a guarded profile page",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.app_state = app_state

    # Same-site lax so the session cookie survives the provider's top-level redirect
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.STATE_TTL_SECONDS,
        same_site="lax",
        https_only=settings.COOKIE_SECURE,
    )

    app.include_router(auth_router)
    app.include_router(profile_router)

    @app.get("/", tags=["System"])
    async def root(request: Request) -> Dict[str, Any]:
        """
        Home endpoint with service information.

        Returns:
            dict: Service metadata, login state and available endpoints
        """
        credential = check_authentication(request, app_state.credential_store)
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "authenticated": credential is not None,
            "endpoints": {
                "login": "/login",
                "logout": "/logout",
                "profile": "/profile",
            },
        }

    @app.get("/ping", tags=["System"])
    async def ping() -> str:
        return "pong"

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        status = "ok" if app_state.flow is not None else "starting"
        return HealthResponse(status=status, service=SERVICE_NAME, version=SERVICE_VERSION)

    register_exception_handlers(app, settings)

    return app


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install handlers for flow errors, guard denials and unexpected errors."""

    @app.exception_handler(AuthFlowError)
    async def auth_flow_error_handler(request: Request, exc: AuthFlowError):
        log_extra = {
            "path": request.url.path,
            "exception_type": type(exc).__name__,
            "client": request.client.host if request.client else None,
        }
        if exc.security_event:
            log_extra["security_event"] = type(exc).__name__
            security_logger.warning("Security-relevant auth failure: %s", exc, extra=log_extra)
        else:
            logging.getLogger("webauth.main").error("Auth flow failed: %s", exc, extra=log_extra)

        return render_error_page(exc)

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
        return RedirectResponse(url=exc.redirect_to, status_code=307)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logging.getLogger("webauth.main").error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        body = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
            details={"exception": str(exc)} if settings.LOG_LEVEL == "DEBUG" else None,
        )
        return JSONResponse(status_code=500, content=body.model_dump())


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "webauth.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
