"""Core error types and validation helpers."""

from inbox_a2a.core.errors import (
    ConfigError,
    ErrorKind,
    InboxError,
    MailboxError,
    ProviderError,
    RpcError,
    ToolError,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "ErrorKind",
    "InboxError",
    "MailboxError",
    "ProviderError",
    "RpcError",
    "ToolError",
    "ValidationError",
]
