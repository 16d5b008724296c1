"""
OpenID Connect provider discovery.

Resolves the provider's endpoints from its well-known configuration document
once at startup and freezes them, together with the client registration, into
a ProviderConfig that the orchestrator owns for its lifetime.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from webauth.auth.errors import ProviderDiscoveryError
from webauth.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable provider endpoints and client registration."""

    authorization_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: Tuple[str, ...]
    userinfo_endpoint: str
    logout_endpoint: str
    issuer: Optional[str] = None
    jwks_uri: Optional[str] = None

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)


async def discover_provider(client: httpx.AsyncClient, settings: Settings) -> ProviderConfig:
    """
    Fetch the discovery document and build the ProviderConfig.

    Args:
        client: Shared HTTP client (carries the configured timeout)
        settings: Validated application settings

    Returns:
        ProviderConfig for the configured tenant

    Raises:
        ProviderDiscoveryError: If the document is unreachable or incomplete
    """
    discovery_url = settings.discovery_url
    logger.info("Discovering OIDC endpoints from %s", discovery_url)

    try:
        response = await client.get(discovery_url)
        response.raise_for_status()
        document = response.json()
    except httpx.HTTPError as e:
        logger.error("OIDC discovery failed: %s", e)
        raise ProviderDiscoveryError(f"Failed to fetch discovery document: {e}") from e
    except ValueError as e:
        raise ProviderDiscoveryError("Discovery document is not valid JSON") from e

    if not isinstance(document, dict):
        raise ProviderDiscoveryError("Discovery document is not a JSON object")

    authorization_endpoint = document.get("authorization_endpoint")
    token_endpoint = document.get("token_endpoint")
    if not authorization_endpoint or not token_endpoint:
        raise ProviderDiscoveryError("OIDC discovery document missing required endpoints")

    # Auth0 tenants always serve /userinfo even when the document omits it
    userinfo_endpoint = document.get("userinfo_endpoint") or f"https://{settings.AUTH0_DOMAIN}/userinfo"

    provider = ProviderConfig(
        authorization_endpoint=str(authorization_endpoint),
        token_endpoint=str(token_endpoint),
        client_id=settings.AUTH0_CLIENT_ID,
        client_secret=settings.AUTH0_CLIENT_SECRET,
        redirect_uri=settings.AUTH0_CALLBACK_URL,
        scopes=tuple(settings.scopes_list),
        userinfo_endpoint=str(userinfo_endpoint),
        logout_endpoint=settings.logout_endpoint,
        issuer=document.get("issuer"),
        jwks_uri=document.get("jwks_uri"),
    )

    logger.info(
        "Discovered OIDC endpoints: auth=%s token=%s",
        provider.authorization_endpoint,
        provider.token_endpoint,
    )
    return provider
