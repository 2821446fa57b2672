"""Caller authentication for the A2A endpoint.

Two schemes are accepted, checked in order:

1. ``Authorization: Bearer <jwt>``. The token's payload segment is decoded
   and checked for a subject, a trusted issuer and (when configured) the
   expected audience. Signature verification happens upstream of this
   service and is not repeated here.
2. A shared development secret in a configurable header, compared in
   constant time against the value of an environment variable.

A request that satisfies neither is rejected before its body is read.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import os
from typing import Any

from inbox_a2a.config.schema import AuthConfig
from inbox_a2a.rpc.types import AgentIdentity

logger = logging.getLogger(__name__)

DEV_IDENTITY_SUB = "dev-agent"
DEV_IDENTITY_EMAIL = "dev@local"


def extract_bearer_token(headers: dict[str, str]) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        headers: Dict of lowercase header names to values.

    Returns:
        The token if present, None otherwise.
    """
    auth_header = headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Decode the claims segment of a JWT without verifying it.

    Raises:
        ValueError: If the token is not three dot-separated segments or the
            payload is not a base64url-encoded JSON object.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Token must have three segments")

    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(segment.encode("ascii"))
        claims = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ValueError(f"Malformed token payload: {e}") from e

    if not isinstance(claims, dict):
        raise ValueError("Token payload must be a JSON object")
    return claims


def _audience_matches(claim: Any, expected: str) -> bool:
    if isinstance(claim, list):
        return expected in claim
    return claim == expected


def identity_from_claims(claims: dict[str, Any], config: AuthConfig) -> AgentIdentity | None:
    """Apply issuer, audience and subject checks to decoded claims."""
    issuer = claims.get("iss")
    if issuer and str(issuer) not in config.trusted_issuers:
        logger.warning("Rejected bearer token from untrusted issuer: %s", issuer)
        return None

    if config.audience and not _audience_matches(claims.get("aud"), config.audience):
        logger.warning("Rejected bearer token with audience %r", claims.get("aud"))
        return None

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.warning("Rejected bearer token without subject")
        return None

    email = claims.get("email")
    return AgentIdentity(sub=subject, email=email if isinstance(email, str) else None)


def validate_shared_secret(provided: str | None, expected: str | None) -> bool:
    """Compare a shared secret in constant time.

    Returns False without comparing when either side is empty.
    """
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class Authenticator:
    """Resolves the caller of an HTTP request.

    Args:
        config: Auth section of the configuration.
        shared_secret: Development secret. Read from ``config.shared_secret_env``
            when omitted; an unset variable disables the scheme.
    """

    def __init__(self, config: AuthConfig, shared_secret: str | None = None) -> None:
        self._config = config
        self._shared_secret = shared_secret or os.environ.get(config.shared_secret_env) or None

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def shared_secret_enabled(self) -> bool:
        return self._shared_secret is not None

    def authenticate(self, headers: dict[str, str]) -> AgentIdentity | None:
        """Return the caller identity, or None when no scheme accepts the request."""
        token = extract_bearer_token(headers)
        if token is not None:
            try:
                identity = identity_from_claims(decode_jwt_payload(token), self._config)
            except ValueError as e:
                logger.warning("Rejected bearer token: %s", e)
                identity = None
            if identity is not None:
                return identity

        provided = headers.get(self._config.shared_secret_header.lower())
        if validate_shared_secret(provided, self._shared_secret):
            return AgentIdentity(
                sub=DEV_IDENTITY_SUB, email=DEV_IDENTITY_EMAIL, method="shared_secret"
            )

        return None
