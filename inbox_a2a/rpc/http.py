"""Pure asyncio HTTP server for the A2A JSON-RPC endpoint.

Routes:
    POST {rpc_path}                     -> JSON-RPC dispatcher (authenticated)
    GET  /.well-known/a2a.json          -> agent card
    GET  /.well-known/a2a-credentials.json -> credentials manifest
    GET  /health                        -> liveness payload

Authentication runs on the headers alone. A rejected caller gets 401 before
the body is read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from inbox_a2a.core.errors import InboxError
from inbox_a2a.rpc.auth import Authenticator
from inbox_a2a.rpc.card import build_credentials_manifest, build_health
from inbox_a2a.rpc.dispatch_core import RpcReply
from inbox_a2a.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    make_error_response,
    serialize_response,
)
from inbox_a2a.rpc.types import AgentIdentity

logger = logging.getLogger(__name__)

# Constants
DEFAULT_PORT = 8765
MAX_BODY_SIZE = 1_048_576  # 1MB
LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")
READ_TIMEOUT = 30.0

# HTTP header limits
MAX_HEADERS_COUNT = 128
MAX_HEADER_NAME_LEN = 1024
MAX_HEADER_VALUE_LEN = 8192
MAX_TOTAL_HEADERS_SIZE = 32 * 1024
MAX_REQUEST_LINE_LEN = 8192

CARD_PATH = "/.well-known/a2a.json"
CREDENTIALS_PATH = "/.well-known/a2a-credentials.json"
HEALTH_PATH = "/health"

UNAUTHORIZED_CODE = 401
UNAUTHORIZED_MESSAGE = "unauthorized_agent"

STATUS_MESSAGES = {
    200: "OK",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


@dataclass
class HttpRequest:
    """Parsed HTTP request head.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: Request path without query string
        headers: Dict of lowercase header names to values
    """

    method: str
    path: str
    headers: dict[str, str]


class HttpParseError(InboxError):
    """Raised when HTTP request parsing fails."""


class RpcEndpoint(Protocol):
    """What the HTTP layer needs from the dispatcher."""

    def card(self) -> dict[str, Any]: ...

    async def handle_body(self, body: str, identity: AgentIdentity) -> RpcReply: ...


async def _readline(reader: asyncio.StreamReader, what: str) -> bytes:
    try:
        return await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
    except TimeoutError:
        raise HttpParseError(f"{what} timeout") from None


async def read_http_head(reader: asyncio.StreamReader) -> HttpRequest:
    """Read the request line and headers (not the body).

    Raises:
        HttpParseError: If the request line or headers are malformed or too large.
    """
    request_line = await _readline(reader, "Request")
    if not request_line:
        raise HttpParseError("Empty request")

    if len(request_line) > MAX_REQUEST_LINE_LEN:
        raise HttpParseError(f"Request line too long: {len(request_line)} > {MAX_REQUEST_LINE_LEN}")

    # "POST /a2a/rpc HTTP/1.1\r\n"
    try:
        request_line_str = request_line.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise HttpParseError(f"Invalid request encoding: {e}") from e
    parts = request_line_str.split(" ")
    if len(parts) != 3:
        raise HttpParseError(f"Invalid request line: {request_line_str}")
    method, target, _version = parts
    path = target.split("?", 1)[0]

    headers: dict[str, str] = {}
    total_headers_size = 0

    while True:
        header_line = await _readline(reader, "Header read")
        if not header_line or header_line in (b"\r\n", b"\n"):
            break

        total_headers_size += len(header_line)
        if total_headers_size > MAX_TOTAL_HEADERS_SIZE:
            raise HttpParseError(
                f"Total headers size exceeds limit: {total_headers_size} > {MAX_TOTAL_HEADERS_SIZE}"
            )

        try:
            header_str = header_line.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise HttpParseError(f"Invalid header encoding: {e}") from e

        if ":" not in header_str:
            continue  # Skip malformed headers

        name, value = header_str.split(":", 1)
        name = name.strip()
        value = value.strip()

        if len(name) > MAX_HEADER_NAME_LEN:
            raise HttpParseError(f"Header name too long: {len(name)} > {MAX_HEADER_NAME_LEN}")
        if len(value) > MAX_HEADER_VALUE_LEN:
            raise HttpParseError(f"Header value too long: {len(value)} > {MAX_HEADER_VALUE_LEN}")
        if len(headers) >= MAX_HEADERS_COUNT:
            raise HttpParseError(f"Too many headers: exceeds limit of {MAX_HEADERS_COUNT}")

        headers[name.lower()] = value

    return HttpRequest(method=method.upper(), path=path, headers=headers)


async def read_http_body(reader: asyncio.StreamReader, headers: dict[str, str]) -> str:
    """Read request body based on Content-Length header.

    Raises:
        HttpParseError: If the body is too large, incomplete, or not UTF-8.
    """
    content_length_str = headers.get("content-length", "0")
    try:
        content_length = int(content_length_str)
    except ValueError as e:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}") from e

    if content_length < 0:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}")
    if content_length > MAX_BODY_SIZE:
        raise HttpParseError(f"Request body too large: {content_length} > {MAX_BODY_SIZE}")
    if content_length == 0:
        return ""

    try:
        body_bytes = await asyncio.wait_for(
            reader.readexactly(content_length),
            timeout=READ_TIMEOUT,
        )
        return body_bytes.decode("utf-8")
    except TimeoutError:
        raise HttpParseError("Body read timeout") from None
    except asyncio.IncompleteReadError as e:
        raise HttpParseError(
            f"Incomplete body: expected {content_length}, got {len(e.partial)}"
        ) from e
    except UnicodeDecodeError as e:
        raise HttpParseError(f"Invalid body encoding: {e}") from e


async def send_http_response(
    writer: asyncio.StreamWriter,
    status: int,
    body: str,
    content_type: str = "application/json",
) -> None:
    """Send an HTTP response. A 204 is sent without body or content type."""
    status_message = STATUS_MESSAGES.get(status, "Unknown")

    body_bytes = b"" if status == 204 else body.encode("utf-8")
    headers = [f"HTTP/1.1 {status} {status_message}"]
    if status != 204:
        headers.append(f"Content-Type: {content_type}; charset=utf-8")
        headers.append(f"Content-Length: {len(body_bytes)}")
    headers += ["Connection: close", "", ""]
    response = "\r\n".join(headers).encode("utf-8") + body_bytes

    writer.write(response)
    await writer.drain()


def unauthorized_reply() -> RpcReply:
    error = make_error_response(None, UNAUTHORIZED_CODE, UNAUTHORIZED_MESSAGE)
    return RpcReply(401, serialize_response(error))


def _error_reply(status: int, code: int, message: str) -> RpcReply:
    return RpcReply(status, serialize_response(make_error_response(None, code, message)))


def route_get(path: str, endpoint: RpcEndpoint) -> RpcReply | None:
    """Serve the unauthenticated discovery routes. None for unknown paths."""
    if path == CARD_PATH:
        return RpcReply(200, json.dumps(endpoint.card()))
    if path == CREDENTIALS_PATH:
        return RpcReply(200, json.dumps(build_credentials_manifest()))
    if path == HEALTH_PATH:
        return RpcReply(200, json.dumps(build_health()))
    return None


async def handle_request(
    reader: asyncio.StreamReader,
    http_request: HttpRequest,
    endpoint: RpcEndpoint,
    authenticator: Authenticator,
    rpc_path: str,
) -> RpcReply:
    """Run one parsed request head through the HTTP pipeline.

    Layers:
        1. GET discovery routes
        2. Path and method check for the RPC route
        3. Authentication (headers only)
        4. Body read
        5. JSON-RPC processing
    """
    # Layer 1: Discovery routes
    if http_request.method == "GET":
        reply = route_get(http_request.path, endpoint)
        if reply is not None:
            return reply

    # Layer 2: Route
    if http_request.path != rpc_path:
        return _error_reply(404, INVALID_REQUEST, f"Not found: {http_request.path}")
    if http_request.method != "POST":
        return _error_reply(405, INVALID_REQUEST, "Method not allowed. Use POST.")

    # Layer 3: Authenticate
    identity = authenticator.authenticate(http_request.headers)
    if identity is None:
        logger.warning("Rejected unauthenticated request to %s", http_request.path)
        return unauthorized_reply()

    # Layer 4: Body
    try:
        body = await read_http_body(reader, http_request.headers)
    except HttpParseError as e:
        logger.debug("Body read failed: %s", e.message)
        return _error_reply(400, PARSE_ERROR, e.message)

    # Layer 5: JSON-RPC
    return await endpoint.handle_body(body, identity)


async def handle_connection(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    endpoint: RpcEndpoint,
    authenticator: Authenticator,
    rpc_path: str,
) -> None:
    """Handle a single HTTP connection and close it."""
    try:
        try:
            http_request = await read_http_head(reader)
        except HttpParseError as e:
            reply = _error_reply(400, PARSE_ERROR, e.message)
        else:
            reply = await handle_request(reader, http_request, endpoint, authenticator, rpc_path)
        await send_http_response(writer, reply.status, reply.body)

    except Exception as e:
        logger.error("Unexpected error handling connection: %s", e, exc_info=True)
        try:
            reply = _error_reply(500, INTERNAL_ERROR, "Internal error")
            await send_http_response(writer, reply.status, reply.body)
        except Exception as send_err:
            logger.debug("Failed to send error response (client disconnected?): %s", send_err)

    finally:
        try:
            writer.close()
            await writer.wait_closed()
        except Exception as close_err:
            logger.debug("Connection close failed (already closed?): %s", close_err)


async def run_http_server(
    endpoint: RpcEndpoint,
    authenticator: Authenticator,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    rpc_path: str = "/a2a/rpc",
    max_concurrent: int = 32,
    started_event: asyncio.Event | None = None,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        endpoint: The dispatcher serving the RPC route and the card.
        authenticator: Resolves callers of the RPC route.
        host: Interface to bind.
        port: Port to listen on. 0 picks a free port.
        rpc_path: Path of the JSON-RPC route.
        max_concurrent: Maximum connections handled at once.
        started_event: Set once the server is listening.
    """
    if host not in LOOPBACK_HOSTS:
        logger.warning("Binding to non-loopback interface %s", host)

    semaphore = asyncio.Semaphore(max_concurrent)

    async def client_handler(
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        async with semaphore:
            await handle_connection(reader, writer, endpoint, authenticator, rpc_path)

    server = await asyncio.start_server(client_handler, host=host, port=port)

    addr = server.sockets[0].getsockname() if server.sockets else (host, port)
    logger.info("A2A JSON-RPC server running at http://%s:%s%s", addr[0], addr[1], rpc_path)

    if started_event:
        started_event.set()

    async with server:
        try:
            await server.serve_forever()
        finally:
            logger.info("HTTP server stopped")
