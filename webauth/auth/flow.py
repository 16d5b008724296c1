"""
Authorization flow orchestrator.

Drives the three steps of the OAuth 2.0 authorization code flow:

1. initiate  - issue a fresh state for the session and build the provider
               authorization URL
2. complete  - verify the callback state, exchange the code, validate the
               token and fetch the user profile
3. logout_url - build the provider-side logout redirect

The orchestrator holds no per-user data. Everything session specific travels
in the explicit Session argument; the only shared objects are the frozen
ProviderConfig and the HTTP client.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlencode, urlsplit

import httpx

from webauth.auth.discovery import ProviderConfig
from webauth.auth.errors import (
    AuthorizationDeniedError,
    InvalidStateError,
    LogoutURLError,
    ProfileFetchError,
    TokenExchangeError,
)
from webauth.auth.state import Session, StateStore
from webauth.auth.tokens import generate_state
from webauth.auth.utils import JWKSCache, validate_token_response, verify_id_token
from webauth.models import Credential, TokenSet, UserProfile

logger = logging.getLogger(__name__)


class AuthorizationFlow:
    """
    OAuth 2.0 authorization code flow against one OIDC provider.

    Args:
        provider: Discovered provider endpoints and client registration
        http_client: Client used for token and user-info calls (bounded timeout)
        state_store: Session-bound store for pending state values
        token_generator: Source of state values
        credential_ttl_seconds: Upper bound on the lifetime of a credential
    """

    def __init__(
        self,
        provider: ProviderConfig,
        http_client: httpx.AsyncClient,
        state_store: StateStore,
        token_generator: Callable[[], str] = generate_state,
        credential_ttl_seconds: int = 3600,
    ) -> None:
        self.provider = provider
        self._client = http_client
        self._state_store = state_store
        self._token_generator = token_generator
        self._credential_ttl = credential_ttl_seconds
        self._jwks = JWKSCache(http_client, provider.jwks_uri) if provider.jwks_uri else None

    # =========================================================================
    # Initiate
    # =========================================================================

    def initiate(self, session: Session) -> str:
        """
        Start a login attempt for the session.

        Any state pending from an earlier attempt is replaced, so only the
        most recent attempt can complete.

        Returns:
            Provider authorization URL to redirect the browser to

        Raises:
            EntropySourceError: If no state value could be generated
        """
        state = self._token_generator()
        self._state_store.put(session, state)

        params = {
            "response_type": "code",
            "client_id": self.provider.client_id,
            "redirect_uri": self.provider.redirect_uri,
            "scope": self.provider.scope,
            "state": state,
        }

        logger.info("Issued login state %s... for session %s...", state[:8], session.id[:8])
        return f"{self.provider.authorization_endpoint}?{urlencode(params)}"

    # =========================================================================
    # Callback
    # =========================================================================

    async def complete(
        self,
        session: Session,
        state: Optional[str],
        code: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> Credential:
        """
        Verify a provider callback and produce the session's credential.

        Each step aborts the whole flow on failure; nothing is persisted here.

        Returns:
            Credential for the authenticated user

        Raises:
            InvalidStateError: State missing or not the one issued to the session
            AuthorizationDeniedError: Provider sent an error or no code
            TokenExchangeError: Code exchange failed (including code reuse)
            InvalidTokenError: Provider returned an unusable token
            ProfileFetchError: User-info could not be retrieved
        """
        if not self._state_store.take_and_verify(session, state):
            raise InvalidStateError("Callback state does not match the state issued to this session")

        if error:
            raise AuthorizationDeniedError(f"Provider returned error={error}: {error_description or ''}".strip())
        if not code:
            raise AuthorizationDeniedError("Callback is missing the authorization code")

        tokens = await self.exchange_code(code)

        if tokens.id_token and self._jwks is not None:
            await verify_id_token(
                tokens.id_token,
                self._jwks,
                audience=self.provider.client_id,
                issuer=self.provider.issuer,
            )

        profile = await self.fetch_profile(tokens.access_token)

        lifetime = self._credential_ttl
        if tokens.expires_in is not None:
            lifetime = min(lifetime, tokens.expires_in)

        logger.info("Authenticated user %s", profile.subject)
        return Credential(
            access_token=tokens.access_token,
            profile=profile,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=lifetime),
        )

    async def exchange_code(self, code: str) -> TokenSet:
        """
        Exchange an authorization code at the token endpoint.

        Raises:
            TokenExchangeError: On network failure, timeout or provider error
            InvalidTokenError: If the returned token is unusable
        """
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.provider.redirect_uri,
            "client_id": self.provider.client_id,
            "client_secret": self.provider.client_secret,
        }

        try:
            response = await self._client.post(
                self.provider.token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("Token exchange request failed: %s", e)
            raise TokenExchangeError(f"Token endpoint unreachable: {e}") from e

        if not response.is_success:
            detail = _provider_error_detail(response)
            logger.error("Token exchange failed (status=%s): %s", response.status_code, detail)
            raise TokenExchangeError(f"Token exchange failed (status={response.status_code}): {detail}")

        try:
            token_data = response.json()
        except ValueError as e:
            raise TokenExchangeError("Token endpoint returned invalid JSON") from e

        return validate_token_response(token_data)

    async def fetch_profile(self, access_token: str) -> UserProfile:
        """
        Fetch the user-info resource with the access token.

        Raises:
            ProfileFetchError: On network failure, provider error or bad payload
        """
        try:
            response = await self._client.get(
                self.provider.userinfo_endpoint,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("User-info request failed: %s", e)
            raise ProfileFetchError(f"User-info endpoint unreachable: {e}") from e

        if not response.is_success:
            logger.error("User-info request failed (status=%s)", response.status_code)
            raise ProfileFetchError(f"User-info request failed (status={response.status_code})")

        try:
            return UserProfile.model_validate(response.json())
        except ValueError as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            raise ProfileFetchError(f"User-info payload is invalid: {e}") from e

    # =========================================================================
    # Logout
    # =========================================================================

    def logout_url(self, return_to: str) -> str:
        """
        Build the provider logout URL that returns the browser to return_to.

        Raises:
            LogoutURLError: If return_to is not an absolute http(s) URL
        """
        parts = urlsplit(return_to)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise LogoutURLError(f"Cannot build logout return URL from {return_to!r}")

        params = {
            "returnTo": f"{parts.scheme}://{parts.netloc}",
            "client_id": self.provider.client_id,
        }
        return f"{self.provider.logout_endpoint}?{urlencode(params)}"


def _provider_error_detail(response: httpx.Response) -> str:
    """Extract the OAuth error code from an error response, if any."""
    try:
        error_data = response.json()
    except ValueError:
        return "no error detail"
    if not isinstance(error_data, dict):
        return "no error detail"
    return str(error_data.get("error_description") or error_data.get("error") or "no error detail")
