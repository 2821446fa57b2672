"""JSON-RPC 2.0 protocol parsing and serialization."""

import json
from typing import Any

from inbox_a2a.core.errors import InboxError
from inbox_a2a.rpc.types import Request, Response


class ParseError(InboxError):
    """Raised when a payload is not valid JSON or not a valid response."""


class InvalidRequestError(InboxError):
    """Raised when a request object is structurally invalid.

    Attributes:
        request_id: The id recovered from the object, if any.
        is_notification: True when the object had no ``id`` member.
    """

    def __init__(
        self,
        message: str,
        request_id: str | int | None = None,
        is_notification: bool = False,
    ) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.is_notification = is_notification


# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000  # Server error range: -32000 to -32099


def parse_payload(body: str) -> tuple[list[Any], bool]:
    """Decode an HTTP body into request candidates.

    Args:
        body: Raw request body.

    Returns:
        (candidates, is_batch). A single object yields a one-element list.
        An array yields its elements unchanged, even if empty.

    Raises:
        ParseError: If the body is not valid JSON.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if isinstance(data, list):
        return data, True
    return [data], False


def _recover_id(data: dict[str, Any]) -> str | int | None:
    request_id = data.get("id")
    if isinstance(request_id, (str, int)) and not isinstance(request_id, bool):
        return request_id
    return None


def validate_request(data: Any) -> Request:
    """Validate one request candidate.

    Args:
        data: A decoded JSON value from the payload.

    Returns:
        A Request object.

    Raises:
        InvalidRequestError: If the candidate is not a valid JSON-RPC 2.0 request.
    """
    if not isinstance(data, dict):
        raise InvalidRequestError("Request must be a JSON object")

    is_notification = "id" not in data
    request_id = _recover_id(data)

    if data.get("jsonrpc") != "2.0":
        raise InvalidRequestError(
            f"jsonrpc must be '2.0', got: {data.get('jsonrpc')!r}",
            request_id,
            is_notification,
        )

    if not is_notification and data["id"] is not None and request_id is None:
        raise InvalidRequestError(
            f"id must be string, number, or null, got: {type(data['id']).__name__}",
            None,
            is_notification,
        )

    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequestError(
            f"method must be a non-empty string, got: {type(method).__name__}",
            request_id,
            is_notification,
        )

    return Request(
        jsonrpc="2.0",
        method=method,
        params=data.get("params"),
        id=request_id,
        is_notification=is_notification,
    )


def response_to_dict(response: Response) -> dict[str, Any]:
    data: dict[str, Any] = {
        "jsonrpc": response.jsonrpc,
        "id": response.id,
    }
    if response.error is not None:
        data["error"] = response.error
    else:
        data["result"] = response.result
    return data


def serialize_response(response: Response) -> str:
    """Serialize a Response to compact JSON."""
    return json.dumps(response_to_dict(response), separators=(",", ":"))


def serialize_responses(responses: list[Response]) -> str:
    """Serialize a batch reply to a compact JSON array."""
    return json.dumps([response_to_dict(r) for r in responses], separators=(",", ":"))


def make_error_response(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any = None,
) -> Response:
    """Create an error response.

    Args:
        request_id: The id from the original request.
        code: JSON-RPC error code.
        message: Human-readable error message.
        data: Optional additional error data.

    Returns:
        A Response with the error field populated.
    """
    error: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if data is not None:
        error["data"] = data

    return Response(jsonrpc="2.0", id=request_id, error=error)


def make_success_response(request_id: str | int | None, result: Any) -> Response:
    return Response(jsonrpc="2.0", id=request_id, result=result)


# === Client-side functions ===


def request_to_dict(request: Request) -> dict[str, Any]:
    data: dict[str, Any] = {
        "jsonrpc": request.jsonrpc,
        "method": request.method,
    }
    if request.params is not None:
        data["params"] = request.params
    if not request.is_notification:
        data["id"] = request.id
    return data


def serialize_request(request: Request) -> str:
    """Serialize a Request to compact JSON. Notifications omit ``id``."""
    return json.dumps(request_to_dict(request), separators=(",", ":"))


def response_from_dict(data: Any) -> Response:
    """Validate one decoded response object.

    Raises:
        ParseError: If required fields are missing or inconsistent.
    """
    if not isinstance(data, dict):
        raise ParseError("Response must be a JSON object")

    if data.get("jsonrpc") != "2.0":
        raise ParseError(f"jsonrpc must be '2.0', got: {data.get('jsonrpc')!r}")

    if "id" not in data:
        raise ParseError("Response must have 'id' field")

    has_result = "result" in data
    has_error = "error" in data
    if has_result and has_error:
        raise ParseError("Response cannot have both 'result' and 'error'")
    if not has_result and not has_error:
        raise ParseError("Response must have either 'result' or 'error'")

    error = data.get("error")
    if error is not None:
        if not isinstance(error, dict):
            raise ParseError(f"error must be an object, got: {type(error).__name__}")
        if "code" not in error or "message" not in error:
            raise ParseError("error must have 'code' and 'message' fields")

    return Response(
        jsonrpc="2.0",
        id=data.get("id"),
        result=data.get("result"),
        error=error,
    )


def parse_response(text: str) -> Response | list[Response]:
    """Parse a JSON-RPC response body (single object or batch array).

    Raises:
        ParseError: If the JSON is invalid or required fields are missing.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if isinstance(data, list):
        return [response_from_dict(item) for item in data]
    return response_from_dict(data)
