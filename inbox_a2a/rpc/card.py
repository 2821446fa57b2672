"""Agent card, credentials manifest and health payloads."""

from __future__ import annotations

from typing import Any

from inbox_a2a import __version__
from inbox_a2a.config.schema import Config
from inbox_a2a.rpc.credentials import CREDENTIALS_MANIFEST_PATH
from inbox_a2a.tools.registry import ToolRegistry

AGENT_ID = "inbox-a2a"
SERVICE_NAME = "inbox-a2a"
APPROVAL_MODE = "stateless_preview_then_approve"
GRANT_CREDENTIAL_KEY = "EMAIL_ACCOUNT_GRANT"
AGENT_DESCRIPTION = (
    "Email agent that can compose, organize and triage email. Supports "
    "approval-first execution and agent-to-agent auth."
)


def _auth_schemes(config: Config, shared_secret_enabled: bool) -> dict[str, Any]:
    audience = config.auth.audience or config.server.public_url
    oidc: dict[str, Any] = {
        "type": "oidc",
        "audience": audience,
        "issuers": list(config.auth.trusted_issuers),
    }
    if not shared_secret_enabled:
        return oidc
    return {
        "schemes": [
            oidc,
            {"type": "shared_secret", "header": config.auth.shared_secret_header},
        ]
    }


def build_agent_card(
    registry: ToolRegistry,
    config: Config,
    shared_secret_enabled: bool = False,
) -> dict[str, Any]:
    """Describe this agent for discovery and ``agent.card``.

    Args:
        registry: Registered tools, listed as capabilities.
        config: Server configuration.
        shared_secret_enabled: Whether to advertise the shared-secret scheme.
    """
    return {
        "agent_id": AGENT_ID,
        "version": __version__,
        "description": AGENT_DESCRIPTION,
        "auth": _auth_schemes(config, shared_secret_enabled),
        "approvals": {"modes": [APPROVAL_MODE]},
        "context_requirements": {"credentials": [GRANT_CREDENTIAL_KEY]},
        "capabilities": registry.capabilities(),
        "rpc": {"endpoint": config.server.rpc_path},
        "extensions": {"credentials_manifest": CREDENTIALS_MANIFEST_PATH},
    }


def build_credentials_manifest() -> dict[str, Any]:
    return {
        "credentials": [
            {
                "key": GRANT_CREDENTIAL_KEY,
                "display_name": "Email Account Grant",
                "sensitive": True,
                "notes": (
                    "Opaque user grant for mailbox access; inject on every "
                    "tool.execute and tool.approve call."
                ),
                "flows": [
                    {
                        "type": "hosted_auth",
                        "provider_scopes": {
                            "google": [
                                "openid",
                                "https://www.googleapis.com/auth/userinfo.email",
                                "https://www.googleapis.com/auth/gmail.modify",
                            ],
                            "microsoft": ["Mail.ReadWrite", "Mail.Send"],
                        },
                    }
                ],
            }
        ]
    }


def build_health() -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
        "transport": "http",
    }
