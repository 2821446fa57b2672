"""Base tool interface for inbox_a2a.

Tools are stateless and shared across requests. Everything request-specific
(the caller's mailbox, a folder index, the batch executor) arrives in a
:class:`ToolContext` built fresh for each RPC call.

- BaseTool: name/description/parameters storage plus ``execute``
- ApprovableTool: tools whose mutations go through preview-then-approve
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from inbox_a2a.ai.email_ai import EmailAI
from inbox_a2a.approval.envelope import ActionType
from inbox_a2a.approval.protocol import Plan, run_approval_flow
from inbox_a2a.batch.executor import BatchExecutor
from inbox_a2a.config.schema import RiskConfig
from inbox_a2a.mailbox.base import MailboxClient
from inbox_a2a.mailbox.folders import FolderCache

logger = logging.getLogger(__name__)

# Schema fragment shared by every tool that supports approval
APPROVAL_PROPERTIES: dict[str, Any] = {
    "require_approval": {
        "type": "boolean",
        "default": True,
        "description": "Return a preview for approval instead of acting immediately",
    },
    "approved": {"type": "boolean", "description": "Set by tool.approve"},
    "action_data": {"type": "object", "description": "Payload from a previous preview"},
}


@dataclass
class ToolContext:
    """Per-call dependencies handed to a tool.

    Attributes:
        mailbox: Mailbox client bound to the caller's grant.
        ai: Planners for natural-language arguments.
        batch: Executor for bulk mutations.
        risk: Thresholds for preview risk strings.
        user_context: The caller's ``user_context`` (credentials normalized).
        request_id: Correlation id echoed in the RPC result.
        folders: Folder index scoped to this call.
    """

    mailbox: MailboxClient
    ai: EmailAI
    batch: BatchExecutor
    risk: RiskConfig = field(default_factory=RiskConfig)
    user_context: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    folders: FolderCache = field(init=False)

    def __post_init__(self) -> None:
        self.folders = FolderCache(self.mailbox)


@runtime_checkable
class Tool(Protocol):
    """Protocol every registered tool satisfies."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def parameters(self) -> dict[str, Any]: ...

    async def execute(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]: ...


class BaseTool(ABC):
    """Stores tool metadata; subclasses implement ``execute``."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        """Run the tool with already-validated arguments."""


class ApprovableTool(BaseTool):
    """A tool whose mutations are previewed before they happen.

    Subclasses implement ``plan`` (compute changes and an envelope, or a
    direct result) and ``commit`` (perform the changes described by
    ``action_data``). ``action_data_schema`` is the only check applied to an
    approved payload.
    """

    action_type: ActionType
    action_data_schema: dict[str, Any] = {"type": "object"}

    def requires_approval(self, arguments: dict[str, Any]) -> bool:
        return arguments.get("require_approval", True) is not False

    async def execute(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        return await run_approval_flow(self, arguments, ctx)

    @abstractmethod
    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        """Compute the planned mutation."""

    @abstractmethod
    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        """Perform the mutation described by ``action_data``."""
