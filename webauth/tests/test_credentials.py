"""
Credential Cookie Tests

Tests the encrypted cookie credential store: round trip, tamper detection,
expiry and clearing.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from cryptography.fernet import Fernet
from fastapi import Response

from webauth.auth.errors import DeserializeError
from webauth.auth.credentials import EncryptedCookieCredentialStore
from webauth.models import Credential, UserProfile

from conftest import USERINFO

COOKIE = "auth-credential"


def make_credential(expires_in: int = 7200) -> Credential:
    return Credential(
        access_token="access-token-1",
        profile=UserProfile.model_validate(USERINFO),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    )


def request_with_cookie(value):
    request = Mock()
    request.cookies = {COOKIE: value} if value is not None else {}
    request.url.path = "/profile"
    request.client.host = "127.0.0.1"
    return request


def sealed_value(store, credential):
    response = Response()
    store.store(response, credential)
    header = response.headers["set-cookie"]
    value = header.split(";", 1)[0].split("=", 1)[1]
    return value.strip('"'), header


@pytest.fixture
def store():
    return EncryptedCookieCredentialStore(key=Fernet.generate_key(), cookie_name=COOKIE, secure=True)


class TestStore:

    def test_round_trip(self, store):
        credential = make_credential()
        value, _ = sealed_value(store, credential)

        loaded = store.load(request_with_cookie(value))

        assert loaded == credential
        assert loaded.profile.subject == "auth0|user-123"

    def test_cookie_holds_no_plaintext(self, store):
        _, header = sealed_value(store, make_credential())

        assert "access-token-1" not in header
        assert "ada@example.com" not in header

    def test_cookie_attributes(self, store):
        _, header = sealed_value(store, make_credential())
        lowered = header.lower()

        assert "httponly" in lowered
        assert "secure" in lowered
        assert "samesite=lax" in lowered
        assert "path=/" in lowered
        assert "max-age=3600" in lowered

    def test_max_age_follows_short_token_expiry(self, store):
        _, header = sealed_value(store, make_credential(expires_in=300))
        attributes = dict(
            part.strip().lower().split("=", 1) for part in header.split(";")[1:] if "=" in part
        )

        assert 298 <= int(attributes["max-age"]) <= 300

    def test_max_age_is_zero_for_expired_credential(self, store):
        _, header = sealed_value(store, make_credential(expires_in=-5))

        assert "max-age=0" in header.lower()


class TestLoad:

    def test_absent_cookie_is_not_logged_in(self, store):
        assert store.load(request_with_cookie(None)) is None

    def test_tampered_cookie_is_rejected_and_logged(self, store, caplog):
        value, _ = sealed_value(store, make_credential())
        tampered = value[:-6] + ("A" if value[-6] != "A" else "B") + value[-5:]

        with caplog.at_level("WARNING", logger="webauth.security"):
            assert store.load(request_with_cookie(tampered)) is None

        records = [r for r in caplog.records if r.name == "webauth.security"]
        assert records
        assert records[0].security_event == "credential_deserialize_failed"

    def test_cookie_from_other_key_is_rejected(self, store):
        other = EncryptedCookieCredentialStore(key=Fernet.generate_key(), cookie_name=COOKIE)
        value, _ = sealed_value(other, make_credential())

        assert store.load(request_with_cookie(value)) is None

    def test_non_ascii_cookie_is_rejected(self, store):
        assert store.load(request_with_cookie("ünïcode")) is None

    def test_expired_credential_is_not_logged_in(self, store):
        value, _ = sealed_value(store, make_credential(expires_in=-5))

        assert store.load(request_with_cookie(value)) is None

    def test_decode_raises_on_garbage(self, store):
        with pytest.raises(DeserializeError):
            store.decode("not-a-fernet-token")

    def test_decode_raises_on_wrong_payload(self, store):
        key = Fernet.generate_key()
        store = EncryptedCookieCredentialStore(key=key, cookie_name=COOKIE)
        value = Fernet(key).encrypt(b'{"access_token": "x"}').decode()

        with pytest.raises(DeserializeError):
            store.decode(value)


def test_clear_expires_cookie(store):
    response = Response()
    store.clear(response)
    header = response.headers["set-cookie"].lower()

    assert header.startswith(f"{COOKIE}=")
    assert "max-age=0" in header
