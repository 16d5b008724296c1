"""
Configuration module for the login server.

This module uses Pydantic Settings to load and validate environment variables
for the identity provider (Auth0-style tenant), session and credential
cookies, outbound HTTP behaviour and logging.

Environment variables are loaded from .env file or system environment.
"""

import base64
import hashlib
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The orchestrator never reads these directly: the application factory turns
    them into an immutable ProviderConfig after discovery.
    """

    # =========================================================================
    # Identity Provider (OIDC)
    # =========================================================================

    AUTH0_DOMAIN: str = Field(
        ...,
        description="Provider tenant domain (e.g., example.eu.auth0.com)",
        min_length=1,
    )

    AUTH0_CLIENT_ID: str = Field(
        ...,
        description="OAuth client ID registered with the provider",
        min_length=1,
    )

    AUTH0_CLIENT_SECRET: str = Field(
        ...,
        description="OAuth client secret (confidential client)",
        min_length=1,
    )

    AUTH0_CALLBACK_URL: str = Field(
        ...,
        description="Redirect URI registered with the provider (e.g., http://localhost:9090/callback)",
        min_length=1,
    )

    OIDC_SCOPES: str = Field(
        default="openid profile email",
        description="Space-separated scopes requested at login",
    )

    # =========================================================================
    # Session & Credential Cookies
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret for signing the session cookie (must be cryptographically secure)",
        min_length=32,
    )

    SESSION_COOKIE_NAME: str = Field(default="auth-sessions")

    CREDENTIAL_ENCRYPTION_KEY: Optional[str] = Field(
        None,
        description="Fernet key for credential cookies (derived from SESSION_SECRET if unset)",
    )

    CREDENTIAL_COOKIE_NAME: str = Field(default="auth-credential")

    CREDENTIAL_TTL_SECONDS: int = Field(
        default=3600,
        description="Lifetime of the credential cookie in seconds",
        ge=60,
        le=86400,
    )

    COOKIE_SECURE: bool = Field(
        default=True,
        description="Mark cookies Secure (disable only for plain-HTTP development)",
    )

    COOKIE_DOMAIN: Optional[str] = Field(
        None,
        description="Cookie Domain attribute (host-only when unset)",
    )

    # =========================================================================
    # CSRF State Store
    # =========================================================================

    STATE_STORE_BACKEND: Literal["session", "memory"] = Field(
        default="session",
        description="Where pending login state is kept: signed session cookie or server memory",
    )

    STATE_TTL_SECONDS: int = Field(
        default=600,
        description="Maximum age of a pending login state (memory backend)",
        ge=30,
        le=3600,
    )

    # =========================================================================
    # Server & Runtime
    # =========================================================================

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for every call to the identity provider",
        gt=0,
        le=60,
    )

    LOG_LEVEL: str = Field(default="INFO")

    HOST: str = Field(default="0.0.0.0")

    PORT: int = Field(default=9090, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def issuer_url(self) -> str:
        """Issuer URL of the provider tenant, with trailing slash."""
        return f"https://{self.AUTH0_DOMAIN}/"

    @property
    def discovery_url(self) -> str:
        return f"{self.issuer_url}.well-known/openid-configuration"

    @property
    def logout_endpoint(self) -> str:
        return f"https://{self.AUTH0_DOMAIN}/v2/logout"

    @property
    def scopes_list(self) -> List[str]:
        """
        Parse OIDC_SCOPES into a de-duplicated list, keeping order.

        Returns:
            List of scope strings.
        """
        scopes: List[str] = []
        for scope in self.OIDC_SCOPES.replace(",", " ").split():
            if scope not in scopes:
                scopes.append(scope)
        return scopes

    @property
    def credential_key(self) -> bytes:
        """
        Fernet key used to encrypt credential cookies.

        Returns:
            The configured key, or a key derived from SESSION_SECRET.
        """
        if self.CREDENTIAL_ENCRYPTION_KEY:
            return self.CREDENTIAL_ENCRYPTION_KEY.encode("ascii")
        digest = hashlib.sha256(f"credential:{self.SESSION_SECRET}".encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("AUTH0_DOMAIN")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        """
        Accept a bare host name; strip a scheme or trailing slash if given.

        Raises:
            ValueError: If the value is not a host name
        """
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")

        if not v or "/" in v or " " in v:
            raise ValueError(f"Invalid provider domain: '{v}'. Expected format: 'tenant.auth0.com'")

        return v

    @field_validator("AUTH0_CALLBACK_URL")
    @classmethod
    def validate_callback_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("AUTH0_CALLBACK_URL must be an absolute http(s) URL")
        return v

    @field_validator("OIDC_SCOPES")
    @classmethod
    def validate_scopes(cls, v: str) -> str:
        if not v.replace(",", " ").split():
            raise ValueError("OIDC_SCOPES must contain at least one scope")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")

        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()
