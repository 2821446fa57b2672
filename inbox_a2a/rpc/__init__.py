"""JSON-RPC 2.0 endpoint: protocol, dispatch, authentication and HTTP server."""

from inbox_a2a.rpc.auth import Authenticator, decode_jwt_payload
from inbox_a2a.rpc.card import build_agent_card, build_credentials_manifest, build_health
from inbox_a2a.rpc.credentials import GRANT_ALIASES, normalize_credentials
from inbox_a2a.rpc.dispatch_core import (
    InvalidParamsError,
    RpcReply,
    dispatch_payload,
    dispatch_request,
)
from inbox_a2a.rpc.dispatcher import A2ADispatcher
from inbox_a2a.rpc.http import run_http_server
from inbox_a2a.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_ERROR,
    ParseError,
    parse_response,
    serialize_request,
)
from inbox_a2a.rpc.types import AgentIdentity, CallContext, Request, Response

__all__ = [
    "A2ADispatcher",
    "AgentIdentity",
    "Authenticator",
    "CallContext",
    "GRANT_ALIASES",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "InvalidParamsError",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "ParseError",
    "Request",
    "Response",
    "RpcReply",
    "SERVER_ERROR",
    "build_agent_card",
    "build_credentials_manifest",
    "build_health",
    "decode_jwt_payload",
    "dispatch_payload",
    "dispatch_request",
    "normalize_credentials",
    "parse_response",
    "run_http_server",
    "serialize_request",
]
