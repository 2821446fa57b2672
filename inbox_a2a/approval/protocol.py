"""Stateless preview-then-approve execution flow.

A tool call moves through ``PLANNING -> NEEDS_APPROVAL`` and stops, returning
an envelope. A later, independent call carrying ``approved: true`` and the
envelope's ``action_data`` goes straight to ``EXECUTING``. The only check on
that payload is its shape. There is no token store and no expiry, so replaying
the same payload performs the mutation again.

Callers may skip approval (``require_approval: false``); the planned
``action_data`` is then committed in the same call. Plans that need no
mutation, such as dry runs, finish in ``PLANNING -> DONE``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from inbox_a2a.approval.envelope import ActionEnvelope, ActionType
from inbox_a2a.core.validation import validate_payload

if TYPE_CHECKING:
    from inbox_a2a.tools.base import ToolContext

logger = logging.getLogger(__name__)


class ApprovalState(str, Enum):
    PLANNING = "planning"
    NEEDS_APPROVAL = "needs_approval"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Plan:
    """Outcome of the planning step.

    Exactly one of ``envelope`` or ``result`` is set.
    """

    envelope: ActionEnvelope | None = None
    result: dict[str, Any] | None = None

    @classmethod
    def done(cls, result: dict[str, Any]) -> Plan:
        return cls(result=result)

    @classmethod
    def needs_approval(cls, envelope: ActionEnvelope) -> Plan:
        return cls(envelope=envelope)


class Approvable(Protocol):
    """What the flow needs from a tool that supports approval."""

    name: str
    action_type: ActionType
    action_data_schema: dict[str, Any]

    def requires_approval(self, arguments: dict[str, Any]) -> bool: ...

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan: ...

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]: ...


def _transition(tool: Approvable, state: ApprovalState) -> None:
    logger.debug("%s -> %s", tool.name, state.value)


def is_approved_execution(arguments: dict[str, Any]) -> bool:
    """True when arguments carry an approval commit."""
    return arguments.get("approved") is True and "action_data" in arguments


async def _execute(
    tool: Approvable,
    action_data: dict[str, Any],
    arguments: dict[str, Any],
    ctx: ToolContext,
) -> dict[str, Any]:
    _transition(tool, ApprovalState.EXECUTING)
    try:
        result = await tool.commit(action_data, arguments, ctx)
    except Exception:
        _transition(tool, ApprovalState.FAILED)
        raise
    _transition(tool, ApprovalState.DONE)
    return result


async def commit_approved(
    tool: Approvable,
    action_data: Any,
    arguments: dict[str, Any],
    ctx: ToolContext,
) -> dict[str, Any]:
    """Execute an approved payload without re-planning.

    Raises:
        ValidationError: If ``action_data`` does not have the shape the tool expects.
    """
    validate_payload(action_data, tool.action_data_schema, "action_data")
    logger.info("Executing approved %s for %s", tool.action_type.value, tool.name)
    return await _execute(tool, action_data, arguments, ctx)


async def run_approval_flow(
    tool: Approvable,
    arguments: dict[str, Any],
    ctx: ToolContext,
) -> dict[str, Any]:
    """Run one call through the approval state machine.

    Returns:
        The commit result, a direct plan result, or a serialized envelope.
    """
    if is_approved_execution(arguments):
        return await commit_approved(tool, arguments["action_data"], arguments, ctx)

    _transition(tool, ApprovalState.PLANNING)
    plan = await tool.plan(arguments, ctx)
    if plan.envelope is None:
        _transition(tool, ApprovalState.DONE)
        return plan.result or {}

    if tool.requires_approval(arguments):
        _transition(tool, ApprovalState.NEEDS_APPROVAL)
        return plan.envelope.to_dict()

    logger.info("Approval disabled by caller, committing %s", tool.action_type.value)
    return await _execute(tool, plan.envelope.action_data, arguments, ctx)
