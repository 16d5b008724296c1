"""
Shared fixtures for the login server tests.

The identity provider is simulated with httpx.MockTransport, so the real
HTTP client code paths run without any network access.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from webauth.auth.discovery import ProviderConfig
from webauth.auth.state import Session
from webauth.config import Settings
from webauth.main import create_app

DOMAIN = "tenant.example.com"
ISSUER = f"https://{DOMAIN}/"
CLIENT_ID = "test-client-id"
CLIENT_SECRET = "test-client-secret"
CALLBACK_URL = "http://testserver/callback"
TEST_KID = "test-key-id-2024"


# Test RSA key pair for signing ID tokens
_PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
TEST_PRIVATE_KEY = _PRIVATE_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
).decode()


def create_mock_jwks(kid: str = TEST_KID) -> Dict[str, Any]:
    jwk = RSAAlgorithm.to_jwk(_PRIVATE_KEY.public_key(), as_dict=True)
    jwk["kid"] = kid
    jwk["use"] = "sig"
    jwk["alg"] = "RS256"
    return {"keys": [jwk]}


def create_mock_id_token(
    audience: str = CLIENT_ID,
    issuer: str = ISSUER,
    kid: str = TEST_KID,
    exp_delta_minutes: int = 60,
) -> str:
    """Create an ID token signed with the test private key."""
    now = datetime.now(timezone.utc)
    payload = {
        "iss": issuer,
        "sub": "auth0|user-123",
        "aud": audience,
        "exp": now + timedelta(minutes=exp_delta_minutes),
        "iat": now,
    }
    return jwt.encode(payload, TEST_PRIVATE_KEY, algorithm="RS256", headers={"kid": kid})


USERINFO = {
    "sub": "auth0|user-123",
    "given_name": "Ada",
    "family_name": "Lovelace",
    "nickname": "ada",
    "name": "Ada Lovelace",
    "picture": "https://cdn.example.com/ada.png",
    "locale": "en",
    "updated_at": "2024-05-01T12:00:00.000Z",
    "email": "ada@example.com",
    "email_verified": True,
}


class FakeProvider:
    """
    In-process identity provider.

    Authorization codes in ``valid_codes`` can be exchanged exactly once;
    later exchanges of the same code fail with invalid_grant.
    """

    def __init__(self) -> None:
        self.valid_codes = {"valid"}
        self.used_codes: set = set()
        self.token_status = 200
        self.token_body: Optional[Dict[str, Any]] = None
        self.token_exception: Optional[Exception] = None
        self.userinfo_status = 200
        self.userinfo_body: Any = dict(USERINFO)
        self.discovery_body: Any = {
            "issuer": ISSUER,
            "authorization_endpoint": f"https://{DOMAIN}/authorize",
            "token_endpoint": f"https://{DOMAIN}/oauth/token",
            "userinfo_endpoint": f"https://{DOMAIN}/userinfo",
            "jwks_uri": f"https://{DOMAIN}/.well-known/jwks.json",
        }
        self.jwks = create_mock_jwks()
        self.requests: List[httpx.Request] = []

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/.well-known/openid-configuration":
            return httpx.Response(200, json=self.discovery_body)

        if path == "/.well-known/jwks.json":
            return httpx.Response(200, json=self.jwks)

        if path == "/oauth/token":
            return self._token(request)

        if path == "/userinfo":
            if request.headers.get("Authorization") != "Bearer access-token-1":
                return httpx.Response(401, json={"error": "invalid_token"})
            if self.userinfo_status != 200:
                return httpx.Response(self.userinfo_status, text="upstream failure")
            return httpx.Response(200, json=self.userinfo_body)

        return httpx.Response(404)

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.token_exception is not None:
            raise self.token_exception

        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        code = form.get("code")

        if (
            form.get("grant_type") != "authorization_code"
            or form.get("client_id") != CLIENT_ID
            or form.get("client_secret") != CLIENT_SECRET
        ):
            return httpx.Response(401, json={"error": "invalid_client"})

        if code not in self.valid_codes or code in self.used_codes:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Invalid authorization code"},
            )
        self.used_codes.add(code)

        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "server_error"})

        body = self.token_body or {
            "access_token": "access-token-1",
            "token_type": "Bearer",
            "expires_in": 86400,
        }
        return httpx.Response(200, json=body)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        AUTH0_DOMAIN=DOMAIN,
        AUTH0_CLIENT_ID=CLIENT_ID,
        AUTH0_CLIENT_SECRET=CLIENT_SECRET,
        AUTH0_CALLBACK_URL=CALLBACK_URL,
        SESSION_SECRET="test-session-secret-1234567890123456",
        COOKIE_SECURE=False,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        authorization_endpoint=f"https://{DOMAIN}/authorize",
        token_endpoint=f"https://{DOMAIN}/oauth/token",
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        redirect_uri=CALLBACK_URL,
        scopes=("openid", "profile", "email"),
        userinfo_endpoint=f"https://{DOMAIN}/userinfo",
        logout_endpoint=f"https://{DOMAIN}/v2/logout",
        issuer=ISSUER,
    )


@pytest.fixture
def session() -> Session:
    return Session(id="session-x-0001", data={})


@pytest.fixture
def state_values():
    """Deterministic state values handed out by /login, in order."""
    return ["abc", "def", "ghi", "jkl"]


@pytest.fixture
def app(settings, provider_config, fake_provider, state_values):
    issued = iter(state_values)
    return create_app(
        settings=settings,
        provider=provider_config,
        transport=httpx.MockTransport(fake_provider.handler),
        token_generator=lambda: next(issued),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
