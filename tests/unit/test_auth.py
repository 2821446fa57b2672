"""Tests for caller authentication."""

import base64
import json
from typing import Any

import pytest

from inbox_a2a.config.schema import AuthConfig
from inbox_a2a.rpc.auth import (
    Authenticator,
    decode_jwt_payload,
    extract_bearer_token,
    validate_shared_secret,
)


def make_token(claims: Any) -> str:
    """Build an unsigned JWT-shaped token carrying ``claims``."""

    def segment(data: Any) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{segment({'alg': 'RS256'})}.{segment(claims)}.signature"


GOOGLE = "https://accounts.google.com"


class TestDecodeJwtPayload:
    """Tests for claim decoding."""

    def test_decodes_unpadded_payload(self) -> None:
        token = make_token({"sub": "123", "email": "bot@example.com"})
        assert decode_jwt_payload(token) == {"sub": "123", "email": "bot@example.com"}

    def test_rejects_wrong_segment_count(self) -> None:
        with pytest.raises(ValueError, match="three segments"):
            decode_jwt_payload("abc.def")

    def test_rejects_garbage_payload(self) -> None:
        with pytest.raises(ValueError):
            decode_jwt_payload("a.!!!not-base64!!!.c")

    def test_rejects_non_object_payload(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            decode_jwt_payload(make_token([1, 2]))


class TestExtractBearerToken:
    """Tests for Authorization header parsing."""

    def test_case_insensitive_prefix(self) -> None:
        assert extract_bearer_token({"authorization": "bearer  tok "}) == "tok"

    def test_missing_header(self) -> None:
        assert extract_bearer_token({}) is None

    def test_other_scheme(self) -> None:
        assert extract_bearer_token({"authorization": "Basic abc"}) is None


class TestSharedSecret:
    """Tests for constant-time secret comparison."""

    def test_match(self) -> None:
        assert validate_shared_secret("s3cret", "s3cret")

    def test_mismatch(self) -> None:
        assert not validate_shared_secret("nope", "s3cret")

    def test_empty_values_never_match(self) -> None:
        assert not validate_shared_secret("", "")
        assert not validate_shared_secret(None, None)


class TestAuthenticator:
    """Tests for scheme selection and identity resolution."""

    def test_bearer_identity(self) -> None:
        auth = Authenticator(AuthConfig())
        token = make_token({"iss": GOOGLE, "sub": "42", "email": "agent@example.com"})

        identity = auth.authenticate({"authorization": f"Bearer {token}"})

        assert identity is not None
        assert identity.sub == "42"
        assert identity.email == "agent@example.com"
        assert identity.method == "bearer"

    def test_untrusted_issuer(self) -> None:
        auth = Authenticator(AuthConfig())
        token = make_token({"iss": "https://evil.example", "sub": "42"})
        assert auth.authenticate({"authorization": f"Bearer {token}"}) is None

    def test_token_without_issuer_accepted(self) -> None:
        auth = Authenticator(AuthConfig())
        token = make_token({"sub": "42"})
        assert auth.authenticate({"authorization": f"Bearer {token}"}) is not None

    def test_missing_subject(self) -> None:
        auth = Authenticator(AuthConfig())
        token = make_token({"iss": GOOGLE, "email": "x@example.com"})
        assert auth.authenticate({"authorization": f"Bearer {token}"}) is None

    def test_audience_enforced_when_configured(self) -> None:
        auth = Authenticator(AuthConfig(audience="https://inbox.example"))
        wrong = make_token({"iss": GOOGLE, "sub": "1", "aud": "https://other.example"})
        right = make_token({"iss": GOOGLE, "sub": "1", "aud": ["https://inbox.example"]})

        assert auth.authenticate({"authorization": f"Bearer {wrong}"}) is None
        assert auth.authenticate({"authorization": f"Bearer {right}"}) is not None

    def test_shared_secret_identity(self) -> None:
        auth = Authenticator(AuthConfig(), shared_secret="dev")
        identity = auth.authenticate({"x-a2a-dev-secret": "dev"})

        assert identity is not None
        assert identity.to_dict() == {"sub": "dev-agent", "email": "dev@local"}
        assert identity.method == "shared_secret"

    def test_shared_secret_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("A2A_DEV_SHARED_SECRET", "from-env")
        auth = Authenticator(AuthConfig())
        assert auth.shared_secret_enabled
        assert auth.authenticate({"x-a2a-dev-secret": "from-env"}) is not None

    def test_shared_secret_disabled_without_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("A2A_DEV_SHARED_SECRET", raising=False)
        auth = Authenticator(AuthConfig())
        assert not auth.shared_secret_enabled
        assert auth.authenticate({"x-a2a-dev-secret": ""}) is None

    def test_bad_bearer_falls_back_to_secret(self) -> None:
        auth = Authenticator(AuthConfig(), shared_secret="dev")
        identity = auth.authenticate({"authorization": "Bearer junk", "x-a2a-dev-secret": "dev"})
        assert identity is not None
        assert identity.sub == "dev-agent"

    def test_custom_header_name(self) -> None:
        auth = Authenticator(AuthConfig(shared_secret_header="X-Team-Secret"), shared_secret="dev")
        assert auth.authenticate({"x-team-secret": "dev"}) is not None

    def test_no_credentials(self) -> None:
        auth = Authenticator(AuthConfig(), shared_secret="dev")
        assert auth.authenticate({}) is None
