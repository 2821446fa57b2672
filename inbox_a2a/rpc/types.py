"""JSON-RPC 2.0 types for the A2A endpoint."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Request:
    """JSON-RPC 2.0 request.

    Attributes:
        jsonrpc: Protocol version, must be "2.0".
        method: Name of the method to invoke.
        params: Parameters for the method.
        id: Request identifier (may be None only when sent as an explicit null).
        is_notification: True when the request carried no ``id`` member.
    """

    jsonrpc: str
    method: str
    params: dict[str, Any] | None = None
    id: str | int | None = None
    is_notification: bool = False


@dataclass
class Response:
    """JSON-RPC 2.0 response.

    Attributes:
        jsonrpc: Protocol version, always "2.0".
        id: Request identifier from the original request.
        result: Result of the method call (mutually exclusive with error).
        error: Error object if method failed (mutually exclusive with result).
    """

    jsonrpc: str
    id: str | int | None
    result: Any | None = None
    error: dict[str, Any] | None = None


@dataclass
class AgentIdentity:
    """The authenticated caller.

    Attributes:
        sub: Stable subject identifier.
        email: Caller email, when known.
        method: How the caller authenticated ("bearer" or "shared_secret").
    """

    sub: str
    email: str | None = None
    method: str = "bearer"

    def to_dict(self) -> dict[str, Any]:
        return {"sub": self.sub, "email": self.email}


@dataclass
class CallContext:
    """Per-HTTP-request data passed to every method handler."""

    identity: AgentIdentity
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
