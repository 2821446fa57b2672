"""Shared dispatch infrastructure for the A2A JSON-RPC endpoint.

``dispatch_request()`` handles one validated request: handler lookup, mapping
exceptions to JSON-RPC error codes, and dropping replies to notifications.
``dispatch_payload()`` handles a whole HTTP body: decoding, single vs batch
shape, validation of each element, and assembly of the reply.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from inbox_a2a.core.errors import InboxError, RpcError, ValidationError
from inbox_a2a.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_ERROR,
    InvalidRequestError,
    ParseError,
    make_error_response,
    make_success_response,
    parse_payload,
    serialize_response,
    serialize_responses,
    validate_request,
)
from inbox_a2a.rpc.types import CallContext, Request, Response

logger = logging.getLogger(__name__)

# Type alias for handler functions
Handler = Callable[[dict[str, Any], CallContext], Coroutine[Any, Any, Any]]


class InvalidParamsError(InboxError):
    """Raised when method parameters are invalid."""


@dataclass
class RpcReply:
    """HTTP-level outcome of processing a JSON-RPC body.

    Attributes:
        status: HTTP status code.
        body: Serialized JSON, or "" when there is nothing to return (204).
    """

    status: int
    body: str


async def dispatch_request(
    request: Request,
    handlers: dict[str, Handler],
    call: CallContext,
    log_context: str = "method",
) -> Response | None:
    """Dispatch a request to the appropriate handler.

    Args:
        request: The validated JSON-RPC request.
        handlers: Mapping of method names to handler coroutines.
        call: Identity and timing of the enclosing HTTP request.
        log_context: Context string for log messages.

    Returns:
        A Response object, or None for notifications.
    """
    response = await _invoke(request, handlers, call, log_context)
    if request.is_notification:
        return None
    return response


async def _invoke(
    request: Request,
    handlers: dict[str, Handler],
    call: CallContext,
    log_context: str,
) -> Response:
    handler = handlers.get(request.method)
    if handler is None:
        return make_error_response(
            request.id,
            METHOD_NOT_FOUND,
            "Method not found",
            {"method": request.method},
        )

    params = request.params if request.params is not None else {}
    if not isinstance(params, dict):
        return make_error_response(
            request.id, INVALID_PARAMS, "Invalid params", "params must be an object"
        )

    try:
        result = await handler(params, call)
        return make_success_response(request.id, result)

    except (InvalidParamsError, ValidationError) as e:
        return make_error_response(request.id, INVALID_PARAMS, "Invalid params", e.message)

    except RpcError as e:
        return make_error_response(request.id, e.code, e.message, e.data)

    except InboxError as e:
        return make_error_response(request.id, SERVER_ERROR, e.message)

    except Exception as e:
        logger.error(
            "Unexpected error dispatching %s '%s': %s",
            log_context,
            request.method,
            e,
            exc_info=True,
        )
        return make_error_response(request.id, INTERNAL_ERROR, "Internal error")


async def _dispatch_candidate(
    candidate: Any,
    handlers: dict[str, Handler],
    call: CallContext,
) -> Response | None:
    try:
        request = validate_request(candidate)
    except InvalidRequestError as e:
        logger.debug("Rejected request: %s", e.message)
        if e.is_notification:
            return None
        return make_error_response(e.request_id, INVALID_REQUEST, "Invalid Request")
    return await dispatch_request(request, handlers, call)


async def dispatch_payload(
    body: str,
    handlers: dict[str, Handler],
    call: CallContext,
) -> RpcReply:
    """Process a full JSON-RPC HTTP body.

    Batch elements are dispatched concurrently. The reply array keeps the
    order of the elements that produced a response.

    Args:
        body: Raw request body.
        handlers: Mapping of method names to handler coroutines.
        call: Identity and timing of the HTTP request.

    Returns:
        RpcReply with status 200 and a JSON body, 204 with an empty body when
        every element was a notification, or 400 for unparseable JSON.
    """
    try:
        candidates, is_batch = parse_payload(body)
    except ParseError as e:
        logger.debug("Parse error: %s", e.message)
        return RpcReply(400, serialize_response(make_error_response(None, PARSE_ERROR, "Parse error")))

    if is_batch and not candidates:
        error = make_error_response(None, INVALID_REQUEST, "Invalid Request")
        return RpcReply(200, serialize_response(error))

    outcomes = await asyncio.gather(
        *(_dispatch_candidate(c, handlers, call) for c in candidates)
    )
    responses = [r for r in outcomes if r is not None]

    if not responses:
        return RpcReply(204, "")
    if is_batch:
        return RpcReply(200, serialize_responses(responses))
    return RpcReply(200, serialize_response(responses[0]))
