"""Typed exception hierarchy for inbox_a2a."""

from __future__ import annotations

from enum import Enum
from typing import Any


class InboxError(Exception):
    """Base class for all inbox_a2a errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(InboxError):
    """Raised for configuration issues (missing file, invalid JSON, validation failure)."""


class ValidationError(InboxError):
    """Raised when tool arguments fail schema validation."""


class ProviderError(InboxError):
    """Raised for LLM provider issues (API errors, network issues, auth failure)."""


class ToolError(InboxError):
    """Raised when a tool cannot build a plan or commit an action."""


class RpcError(InboxError):
    """A domain failure with its own JSON-RPC error code.

    Handlers raise this for failures that callers branch on, such as
    ``401 missing_credentials`` or ``404 unknown_tool``.

    Attributes:
        code: Numeric code placed in the JSON-RPC error object.
        data: Optional structured detail for the error object.
    """

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class ErrorKind(str, Enum):
    """Closed classification of mailbox failures."""

    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CLIENT = "client"
    NETWORK = "network"
    INVALID = "invalid"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.SERVER)

    @classmethod
    def from_status(cls, status_code: int) -> ErrorKind:
        """Map an upstream HTTP status code to its kind."""
        if status_code == 429:
            return cls.RATE_LIMITED
        if status_code >= 500:
            return cls.SERVER
        if status_code in (401, 403):
            return cls.AUTH
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 409:
            return cls.CONFLICT
        return cls.CLIENT


class MailboxError(InboxError):
    """Raised by the mailbox adapter for any failed upstream call.

    Attributes:
        kind: Classification used by the batch executor for retry decisions.
        status_code: Upstream HTTP status, or None for transport/structural failures.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, message: str) -> MailboxError:
        return cls(message, ErrorKind.from_status(status_code), status_code)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable
