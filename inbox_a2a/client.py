"""Async HTTP client for the A2A JSON-RPC endpoint."""

import json
import logging
from typing import Any, cast

import httpx

from inbox_a2a.core.errors import InboxError
from inbox_a2a.rpc.protocol import ParseError, parse_response, request_to_dict, serialize_request
from inbox_a2a.rpc.types import Request, Response

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://127.0.0.1:8765/a2a/rpc"
SHARED_SECRET_HEADER = "x-a2a-dev-secret"


class ClientError(InboxError):
    """Exception for client-side errors (connection, timeout, protocol, RPC).

    Attributes:
        code: JSON-RPC error code when the server returned an error object.
        data: The error object's ``data`` member, if any.
    """

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class InboxClient:
    """Async client for an inbox agent.

    Usage:
        async with InboxClient(url, shared_secret="...") as client:
            card = await client.card()
            preview = await client.execute("manage_email", args, credentials)

    Args:
        url: Full URL of the JSON-RPC route.
        timeout: Request timeout in seconds.
        bearer_token: Identity token sent as ``Authorization: Bearer``.
        shared_secret: Development secret sent in ``secret_header``.
        secret_header: Header name for the shared secret.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout: float = 60.0,
        bearer_token: str | None = None,
        shared_secret: str | None = None,
        secret_header: str = SHARED_SECRET_HEADER,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._bearer_token = bearer_token
        self._shared_secret = shared_secret
        self._secret_header = secret_header
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

    async def __aenter__(self) -> "InboxClient":
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._bearer_token:
            headers["Authorization"] = f"Bearer {self._bearer_token}"
        if self._shared_secret:
            headers[self._secret_header] = self._shared_secret
        return headers

    async def _post(self, content: str, label: str) -> httpx.Response:
        if self._client is None:
            raise ClientError("Client not initialized. Use 'async with' context manager.")
        try:
            return await self._client.post(self._url, content=content, headers=self._headers())
        except httpx.ConnectError as e:
            logger.warning("Connection failed to %s: %s", self._url, e)
            raise ClientError(f"Connection failed: {e}") from e
        except httpx.TimeoutException as e:
            logger.warning("Request timed out: %s, timeout=%s", label, self._timeout)
            raise ClientError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ClientError(f"HTTP error: {e}") from e

    async def _call(self, method: str, params: dict[str, Any] | None = None) -> Response:
        request = Request(jsonrpc="2.0", method=method, params=params, id=self._next_id())
        logger.debug("RPC call: method=%s, id=%s", method, request.id)
        http_response = await self._post(serialize_request(request), method)
        try:
            response = parse_response(http_response.text)
        except ParseError as e:
            logger.warning("Invalid server response for method=%s: %s", method, e)
            raise ClientError(f"Invalid server response: {e}") from e
        if isinstance(response, list):
            raise ClientError("Invalid server response: unexpected batch reply")
        return response

    def _check(self, response: Response) -> Any:
        """Extract result from response or raise ClientError on error."""
        if response.error:
            code = response.error.get("code", -1)
            message = response.error.get("message", "Unknown error")
            logger.warning("RPC error %d: %s", code, message)
            raise ClientError(
                f"RPC error {code}: {message}", code=code, data=response.error.get("data")
            )
        return response.result

    async def card(self) -> dict[str, Any]:
        return cast(dict[str, Any], self._check(await self._call("agent.card")))

    async def handshake(self) -> dict[str, Any]:
        return cast(dict[str, Any], self._check(await self._call("agent.handshake")))

    async def execute(
        self,
        tool: str,
        arguments: dict[str, Any] | None = None,
        credentials: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        """Run a tool.

        Returns:
            ``{request_id, result}``. ``result`` is either the tool output or
            an approval envelope (``needs_approval: true``).
        """
        params: dict[str, Any] = {
            "tool": tool,
            "arguments": arguments or {},
            "user_context": {"credentials": credentials or {}},
        }
        if request_id is not None:
            params["request_id"] = request_id
        return cast(dict[str, Any], self._check(await self._call("tool.execute", params)))

    async def approve(
        self,
        tool: str,
        original_arguments: dict[str, Any],
        action_data: dict[str, Any],
        credentials: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        """Commit the ``action_data`` of a previously returned envelope."""
        params: dict[str, Any] = {
            "tool": tool,
            "original_arguments": original_arguments,
            "action_data": action_data,
            "user_context": {"credentials": credentials or {}},
        }
        if request_id is not None:
            params["request_id"] = request_id
        return cast(dict[str, Any], self._check(await self._call("tool.approve", params)))

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification. The server replies 204 with no body."""
        request = Request(jsonrpc="2.0", method=method, params=params, is_notification=True)
        http_response = await self._post(serialize_request(request), method)
        if http_response.status_code != 204:
            raise ClientError(
                f"Unexpected status for notification: {http_response.status_code}"
            )

    async def batch(
        self, calls: list[tuple[str, dict[str, Any] | None]]
    ) -> list[Response]:
        """Send several calls in one request.

        Returns:
            Responses in the order the server returned them. Errors are not
            raised; inspect each response's ``error``.
        """
        requests = [
            Request(jsonrpc="2.0", method=method, params=params, id=self._next_id())
            for method, params in calls
        ]
        body = json.dumps([request_to_dict(r) for r in requests], separators=(",", ":"))
        http_response = await self._post(body, "batch")
        if http_response.status_code == 204:
            return []
        try:
            parsed = parse_response(http_response.text)
        except ParseError as e:
            raise ClientError(f"Invalid server response: {e}") from e
        return parsed if isinstance(parsed, list) else [parsed]
