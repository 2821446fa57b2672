"""JSON-RPC method dispatcher for the A2A endpoint.

Methods:
    agent.card       Static capability descriptor.
    agent.handshake  Caller identity, card and server time.
    tool.execute     Run a tool; may return an approval envelope.
    tool.approve     Commit an approved envelope's ``action_data``.

The dispatcher and the tool registry are built once at startup. Everything
bound to a caller (mailbox client, folder cache) is built per call and
released when the call returns.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from typing import Any

from inbox_a2a.ai.email_ai import EmailAI
from inbox_a2a.batch.executor import BatchExecutor, BatchSettings
from inbox_a2a.config.schema import Config
from inbox_a2a.core.errors import RpcError
from inbox_a2a.core.validation import validate_tool_arguments
from inbox_a2a.mailbox.base import MailboxClient
from inbox_a2a.mailbox.nylas import NylasMailbox
from inbox_a2a.rpc.card import build_agent_card
from inbox_a2a.rpc.credentials import CREDENTIALS_MANIFEST_PATH, normalize_credentials
from inbox_a2a.rpc.dispatch_core import Handler, InvalidParamsError, RpcReply, dispatch_payload
from inbox_a2a.rpc.types import AgentIdentity, CallContext
from inbox_a2a.tools.base import Tool, ToolContext
from inbox_a2a.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# (api_key, grant_id) -> mailbox client for one call
MailboxFactory = Callable[[str, str], MailboxClient]


class A2ADispatcher:
    """Routes JSON-RPC requests to handler methods.

    Args:
        registry: Tools available to ``tool.execute``/``tool.approve``.
        config: Server configuration.
        ai: Planners shared by all calls. Deterministic fallbacks when omitted.
        mailbox_factory: Builds the per-call mailbox client. Defaults to
            :class:`NylasMailbox` against ``config.mailbox``.
        mailbox_api_key: Server-side mailbox API key. Read from
            ``config.mailbox.api_key_env`` at call time when omitted.
        batch: Executor for bulk mutations. Built from ``config.batch`` when omitted.
        shared_secret_enabled: Whether the card advertises the shared-secret scheme.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: Config | None = None,
        ai: EmailAI | None = None,
        mailbox_factory: MailboxFactory | None = None,
        mailbox_api_key: str | None = None,
        batch: BatchExecutor | None = None,
        shared_secret_enabled: bool = False,
    ) -> None:
        self._registry = registry
        self._config = config or Config()
        self._ai = ai or EmailAI()
        self._mailbox_factory = mailbox_factory or self._default_mailbox
        self._mailbox_api_key = mailbox_api_key
        self._batch = batch or BatchExecutor(BatchSettings.from_config(self._config.batch))
        self._shared_secret_enabled = shared_secret_enabled
        self._approval_tools = frozenset(registry.approval_tools())

        self._handlers: dict[str, Handler] = {
            "agent.card": self._handle_card,
            "agent.handshake": self._handle_handshake,
            "tool.execute": self._handle_execute,
            "tool.approve": self._handle_approve,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._handlers)

    def card(self) -> dict[str, Any]:
        return build_agent_card(self._registry, self._config, self._shared_secret_enabled)

    async def handle_body(self, body: str, identity: AgentIdentity) -> RpcReply:
        """Process one authenticated HTTP body."""
        return await dispatch_payload(body, self._handlers, CallContext(identity=identity))

    async def aclose(self) -> None:
        await self._ai.aclose()

    # === Method handlers ===

    async def _handle_card(self, params: dict[str, Any], call: CallContext) -> dict[str, Any]:
        return self.card()

    async def _handle_handshake(self, params: dict[str, Any], call: CallContext) -> dict[str, Any]:
        return {
            "agent": call.identity.to_dict(),
            "card": self.card(),
            "server_time": call.received_at.isoformat(),
        }

    async def _handle_execute(self, params: dict[str, Any], call: CallContext) -> dict[str, Any]:
        """Handle ``tool.execute``.

        Raises:
            RpcError: 401 missing_credentials or 404 unknown_tool.
            InvalidParamsError: If ``tool`` or ``arguments`` are malformed.
        """
        api_key, credentials = self._require_credentials(params)
        tool_name = _tool_name(params)

        tool = self._registry.get(tool_name)
        if tool is None:
            raise RpcError(404, "unknown_tool", {"tool": tool_name})

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("arguments must be an object")

        request_id = _request_id(params)
        result = await self._run_tool(tool, arguments, api_key, credentials, params, request_id)
        return {"request_id": request_id, "result": result}

    async def _handle_approve(self, params: dict[str, Any], call: CallContext) -> dict[str, Any]:
        """Handle ``tool.approve``.

        The approved ``action_data`` is merged into the original arguments and
        run through the tool. Nothing ties it to an earlier preview, so each
        call performs the mutation.

        Raises:
            RpcError: 401 missing_credentials or 400 approval_not_supported_for_tool.
            InvalidParamsError: If ``action_data`` is missing or arguments are malformed.
        """
        api_key, credentials = self._require_credentials(params)
        tool_name = _tool_name(params)

        if params.get("action_data") is None:
            raise InvalidParamsError("action_data is required")

        if tool_name not in self._approval_tools:
            raise RpcError(400, "approval_not_supported_for_tool", {"tool": tool_name})
        tool = self._registry.get(tool_name)
        if tool is None:
            raise RpcError(404, "unknown_tool", {"tool": tool_name})

        original = params.get("original_arguments")
        if original is None:
            original = {}
        if not isinstance(original, dict):
            raise InvalidParamsError("original_arguments must be an object")

        command = {**original, "approved": True, "action_data": params["action_data"]}
        request_id = _request_id(params)
        logger.info("Approval received for %s (request %s)", tool_name, request_id)
        result = await self._run_tool(tool, command, api_key, credentials, params, request_id)
        return {"request_id": request_id, "result": result}

    # === Helpers ===

    def _require_credentials(self, params: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        credentials = normalize_credentials(params.get("user_context"))
        api_key = self._mailbox_api_key or os.environ.get(self._config.mailbox.api_key_env)
        if not api_key or not credentials.get("grant_id"):
            raise RpcError(401, "missing_credentials", {"hint": CREDENTIALS_MANIFEST_PATH})
        return api_key, credentials

    def _default_mailbox(self, api_key: str, grant_id: str) -> MailboxClient:
        return NylasMailbox(
            api_key,
            grant_id,
            base_url=self._config.mailbox.base_url,
            timeout=self._config.mailbox.request_timeout,
        )

    async def _run_tool(
        self,
        tool: Tool,
        arguments: dict[str, Any],
        api_key: str,
        credentials: dict[str, Any],
        params: dict[str, Any],
        request_id: str,
    ) -> dict[str, Any]:
        validated = validate_tool_arguments(arguments, tool.parameters, logger)

        user_context = params.get("user_context")
        user_context = dict(user_context) if isinstance(user_context, dict) else {}
        user_context["credentials"] = credentials

        mailbox = self._mailbox_factory(api_key, credentials["grant_id"])
        ctx = ToolContext(
            mailbox=mailbox,
            ai=self._ai,
            batch=self._batch,
            risk=self._config.risk,
            user_context=user_context,
            request_id=request_id,
        )
        try:
            return await tool.execute(validated, ctx)
        finally:
            await mailbox.aclose()


def _tool_name(params: dict[str, Any]) -> str:
    tool_name = params.get("tool")
    if not isinstance(tool_name, str) or not tool_name:
        raise InvalidParamsError("tool must be a non-empty string")
    return tool_name


def _request_id(params: dict[str, Any]) -> str:
    request_id = params.get("request_id")
    if isinstance(request_id, str) and request_id:
        return request_id
    return uuid.uuid4().hex
