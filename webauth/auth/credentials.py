"""
Credential persistence in encrypted browser cookies.

The access token and profile snapshot are serialized to JSON and sealed with
Fernet (AES-CBC encryption plus HMAC-SHA256 authentication) before being set
as a cookie. The browser holds only ciphertext; a modified or forged cookie
fails authentication and is treated as "not logged in".
"""

import logging
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request, Response
from pydantic import ValidationError

from webauth.auth.errors import DeserializeError
from webauth.models import Credential

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("webauth.security")


class CredentialStore(Protocol):
    """Browser-scoped storage for the authenticated credential."""

    def store(self, response: Response, credential: Credential) -> None:
        ...

    def load(self, request: Request) -> Optional[Credential]:
        ...

    def clear(self, response: Response) -> None:
        ...


class EncryptedCookieCredentialStore:
    """
    Keeps the credential in a single encrypted, HttpOnly cookie.

    Args:
        key: URL-safe base64 Fernet key
        cookie_name: Name of the credential cookie
        ttl_seconds: Upper bound on cookie and token lifetime
        secure: Set the Secure cookie attribute
        domain: Optional Domain attribute (host-only when None)
    """

    def __init__(
        self,
        key: bytes,
        cookie_name: str = "auth-credential",
        ttl_seconds: int = 3600,
        secure: bool = True,
        domain: Optional[str] = None,
    ) -> None:
        self._fernet = Fernet(key)
        self.cookie_name = cookie_name
        self.ttl_seconds = ttl_seconds
        self._secure = secure
        self._domain = domain

    def store(self, response: Response, credential: Credential) -> None:
        payload = credential.model_dump_json(by_alias=True).encode("utf-8")
        sealed = self._fernet.encrypt(payload).decode("ascii")
        # Max-Age must agree with the expiry sealed inside the payload
        lifetime = min(self.ttl_seconds, credential.remaining_seconds())

        response.set_cookie(
            key=self.cookie_name,
            value=sealed,
            max_age=lifetime,
            expires=credential.expires_at,
            path="/",
            domain=self._domain,
            secure=self._secure,
            httponly=True,
            samesite="lax",
        )

    def load(self, request: Request) -> Optional[Credential]:
        value = request.cookies.get(self.cookie_name)
        if not value:
            return None

        try:
            credential = self.decode(value)
        except DeserializeError as e:
            security_logger.warning(
                "Rejected credential cookie: %s",
                e,
                extra={
                    "security_event": "credential_deserialize_failed",
                    "path": request.url.path,
                    "client": request.client.host if request.client else None,
                },
            )
            return None

        if credential.is_expired():
            logger.info("Credential for %s has expired", credential.profile.subject)
            return None

        return credential

    def clear(self, response: Response) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value="",
            max_age=0,
            expires=0,
            path="/",
            domain=self._domain,
            secure=self._secure,
            httponly=True,
            samesite="lax",
        )

    def decode(self, value: str) -> Credential:
        """
        Decrypt and validate a cookie value.

        Raises:
            DeserializeError: If the value is forged, stale beyond the TTL,
                              or does not hold a valid credential
        """
        try:
            payload = self._fernet.decrypt(value.encode("ascii"), ttl=self.ttl_seconds)
        except (InvalidToken, UnicodeEncodeError) as e:
            raise DeserializeError("Credential cookie failed authentication") from e

        try:
            return Credential.model_validate_json(payload)
        except ValidationError as e:
            raise DeserializeError("Credential cookie payload is malformed") from e
