"""Normalization of caller-supplied mailbox credentials.

Callers have sent the grant under several names over time. They are folded
into one canonical ``grant_id`` key before any tool sees them.
"""

from typing import Any

# Accepted spellings, highest precedence first
GRANT_ALIASES = ("EMAIL_ACCOUNT_GRANT", "NYLAS_GRANT_ID", "nylas_grant_id", "grant_id")

CREDENTIALS_MANIFEST_PATH = "/.well-known/a2a-credentials.json"


def normalize_credentials(user_context: Any) -> dict[str, Any]:
    """Return the caller's credentials with the grant under ``grant_id``.

    Args:
        user_context: ``params.user_context`` from the RPC call. Non-dict
            values are treated as empty.

    Returns:
        A new dict. Alias keys are removed; ``grant_id`` is present only when
        some alias held a non-empty string.
    """
    if not isinstance(user_context, dict):
        return {}
    raw = user_context.get("credentials")
    if not isinstance(raw, dict):
        return {}

    grant = next(
        (raw[k] for k in GRANT_ALIASES if isinstance(raw.get(k), str) and raw[k].strip()),
        None,
    )
    normalized = {k: v for k, v in raw.items() if k not in GRANT_ALIASES}
    if grant is not None:
        normalized["grant_id"] = grant.strip()
    return normalized
