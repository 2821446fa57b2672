"""Configuration loading and validation."""

from inbox_a2a.config.loader import load_config
from inbox_a2a.config.schema import (
    AuthConfig,
    BatchConfig,
    Config,
    LLMConfig,
    MailboxConfig,
    RiskConfig,
    ServerConfig,
)

__all__ = [
    "AuthConfig",
    "BatchConfig",
    "Config",
    "LLMConfig",
    "MailboxConfig",
    "RiskConfig",
    "ServerConfig",
    "load_config",
]
