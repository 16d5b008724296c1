"""
Token validation utilities for the authorization code flow.

This module handles:
- Validating the token endpoint response shape and expiry
- Fetching and caching the provider's JWKS (JSON Web Key Set)
- Verifying OIDC ID tokens (signature, audience, issuer, expiry)
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
import jwt
from pydantic import ValidationError

from webauth.auth.errors import InvalidTokenError
from webauth.models import TokenSet

logger = logging.getLogger(__name__)

# Clock skew tolerance for ID token timestamps
LEEWAY_SECONDS = 10


# =============================================================================
# Token Response Validation
# =============================================================================

def validate_token_response(token_data: Any) -> TokenSet:
    """
    Check that the token endpoint returned a usable bearer token.

    Args:
        token_data: Decoded JSON body of the token response

    Returns:
        TokenSet with the validated fields

    Raises:
        InvalidTokenError: If the token is missing, not a bearer token,
                           or already expired
    """
    if not isinstance(token_data, dict):
        raise InvalidTokenError("Token response is not a JSON object")

    access_token = token_data.get("access_token")
    if not isinstance(access_token, str) or not access_token.strip():
        raise InvalidTokenError("Token response missing access_token")

    token_type = token_data.get("token_type") or "Bearer"
    if str(token_type).lower() != "bearer":
        raise InvalidTokenError(f"Unsupported token type: {token_type}")

    expires_in = token_data.get("expires_in")
    if expires_in is not None:
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as e:
            raise InvalidTokenError("Token response has non-numeric expires_in") from e
        if expires_in <= 0:
            raise InvalidTokenError("Access token is already expired")

    try:
        return TokenSet(
            access_token=access_token,
            token_type=str(token_type),
            expires_in=expires_in,
            id_token=token_data.get("id_token") or None,
        )
    except ValidationError as e:
        raise InvalidTokenError(f"Malformed token response: {e}") from e


# =============================================================================
# JWKS Cache
# =============================================================================

class JWKSCache:
    """
    Fetches the provider's JWKS and caches it for ``cache_seconds``.

    One instance is owned by each orchestrator; nothing is cached globally.
    """

    def __init__(self, client: httpx.AsyncClient, jwks_uri: str, cache_seconds: float = 3600.0) -> None:
        self._client = client
        self._jwks_uri = jwks_uri
        self._cache_seconds = cache_seconds
        self._jwks: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0

    async def get(self, force_refresh: bool = False) -> Dict[str, Any]:
        """
        Return the JWKS document, fetching it when stale.

        Raises:
            httpx.HTTPError: If the JWKS endpoint is unreachable
            ValueError: If the response is not a key set
        """
        now = time.monotonic()
        if not force_refresh and self._jwks and (now - self._fetched_at) < self._cache_seconds:
            return self._jwks

        response = await self._client.get(self._jwks_uri)
        response.raise_for_status()
        jwks_data = response.json()

        if not isinstance(jwks_data, dict) or "keys" not in jwks_data:
            raise ValueError("Invalid JWKS response: missing 'keys' field")

        self._jwks = jwks_data
        self._fetched_at = now
        return jwks_data


def get_signing_key(token: str, jwks: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Find the JWK matching the token's ``kid`` header.

    Raises:
        InvalidTokenError: If the token header is malformed or has no kid
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Failed to decode token header: {e}") from e

    kid = unverified_header.get("kid")
    if not kid:
        raise InvalidTokenError("Token header missing 'kid' (Key ID)")

    for key in jwks.get("keys", []):
        if isinstance(key, dict) and key.get("kid") == kid:
            return key

    return None


async def verify_id_token(
    id_token: str,
    jwks_cache: JWKSCache,
    audience: str,
    issuer: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Verify and decode an ID token issued by the provider.

    1. Finds the signing key in the (possibly refreshed) JWKS
    2. Verifies the RS256 signature
    3. Validates exp, iat, aud and, when known, iss

    Args:
        id_token: Compact JWT from the token response
        jwks_cache: JWKS source for the provider
        audience: Expected audience (our client ID)
        issuer: Expected issuer from discovery, if published

    Returns:
        Dictionary of verified claims

    Raises:
        InvalidTokenError: If the token cannot be verified
    """
    try:
        jwks = await jwks_cache.get()
        signing_key = get_signing_key(id_token, jwks)
        if not signing_key:
            # Keys may have rotated since the last fetch
            jwks = await jwks_cache.get(force_refresh=True)
            signing_key = get_signing_key(id_token, jwks)
    except (httpx.HTTPError, ValueError) as e:
        raise InvalidTokenError(f"Unable to load provider signing keys: {e}") from e

    if not signing_key:
        raise InvalidTokenError("Unable to find matching signing key in JWKS")

    try:
        public_key = jwt.PyJWK(signing_key).key
        claims = jwt.decode(
            id_token,
            public_key,
            algorithms=["RS256"],
            audience=audience,
            issuer=issuer,
            leeway=LEEWAY_SECONDS,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("ID token has expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"ID token verification failed: {e}") from e

    return claims
