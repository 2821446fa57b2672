"""Shared pieces for the bulk tools: rule matching and batched mutations."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any

from inbox_a2a.batch.executor import BatchFailure, BatchResult, format_report
from inbox_a2a.core.errors import InboxError, ToolError
from inbox_a2a.mailbox.base import Message
from inbox_a2a.tools.base import ToolContext

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("move", "archive", "star", "mark_read", "delete")

_ACTION_ALIASES = {
    "move": "move",
    "move to folder": "move",
    "move to": "move",
    "archive": "archive",
    "star": "star",
    "flag": "star",
    "mark read": "mark_read",
    "mark as read": "mark_read",
    "mark_read": "mark_read",
    "delete": "delete",
}

_OLDER_THAN = re.compile(r"older than (\d+) days?")

OPERATIONS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "message_id": {"type": "string", "minLength": 1},
            "action": {"type": "string", "enum": list(BULK_ACTIONS)},
            "target": {"type": ["string", "null"]},
        },
        "required": ["message_id", "action"],
    },
}


def normalize_action(action: str) -> str | None:
    """Map a free-text action onto one of BULK_ACTIONS, or None if unsupported."""
    return _ACTION_ALIASES.get(action.strip().lower())


def message_matches(message: Message, condition: str, now: float | None = None) -> bool:
    """Evaluate one rule condition against a message.

    Supported forms: ``subject contains X``, ``from X``, ``unread``,
    ``starred``/``important``, ``older than N days``; anything else is a
    substring search over subject and snippet.
    """
    cond = condition.strip().lower()

    if "subject contains" in cond:
        term = cond.split("subject contains", 1)[1].strip().strip("'\"")
        return term in message.subject.lower()

    if cond.startswith("from"):
        term = cond[4:].lstrip(": ").strip().strip("'\"")
        sender = message.sender
        if sender is None:
            return False
        return term in sender.email.lower() or term in (sender.name or "").lower()

    if cond == "unread":
        return message.unread

    if cond in ("starred", "important"):
        return message.starred

    match = _OLDER_THAN.search(cond)
    if match:
        if not message.date:
            return False
        cutoff = (now if now is not None else time.time()) - int(match.group(1)) * 86400
        return message.date < cutoff

    return cond in message.subject.lower() or cond in message.snippet.lower()


async def make_operation(
    ctx: ToolContext, action: str, target: str | None = None
) -> Callable[[str], Awaitable[None]]:
    """Build the per-message mutation for ``action``.

    Folder lookups happen here, once per batch, so a missing target fails the
    whole batch before any message is touched.

    Raises:
        ToolError: For unknown actions or a move without a target.
        MailboxError: If the target or archive folder cannot be resolved.
    """
    mailbox = ctx.mailbox

    if action == "move":
        if not target:
            raise ToolError("Move action requires a target folder")
        folder_id = (await ctx.folders.ensure(target)).id

        async def move(message_id: str) -> None:
            await mailbox.update_message(message_id, folders=[folder_id])
        return move

    if action == "archive":
        archive_id = await ctx.folders.archive_id()

        async def archive(message_id: str) -> None:
            await mailbox.update_message(message_id, folders=[archive_id])
        return archive

    if action == "star":
        async def star(message_id: str) -> None:
            await mailbox.update_message(message_id, starred=True)
        return star

    if action == "mark_read":
        async def mark_read(message_id: str) -> None:
            await mailbox.update_message(message_id, unread=False)
        return mark_read

    if action == "delete":
        return mailbox.destroy_message

    raise ToolError(f"Unsupported bulk action: {action}")


def batch_payload(result: BatchResult, headline: str) -> dict[str, Any]:
    """Tool result for a completed batch, including its text report."""
    return {
        "success": not result.failures,
        **result.to_dict(),
        "report": format_report(result, headline),
    }


async def run_grouped(
    ctx: ToolContext, operations: list[dict[str, Any]]
) -> dict[str, Any]:
    """Run operations grouped by (action, target), one batch per group.

    A group whose setup fails (folder lookup or creation, unsupported action)
    has all of its ids reported as failures with zero attempts. Later groups
    still run, so the totals always cover every operation.
    """
    groups: dict[tuple[str, str | None], list[str]] = {}
    for op in operations:
        groups.setdefault((op["action"], op.get("target")), []).append(op["message_id"])

    summaries = []
    succeeded = failed = 0
    for (action, target), ids in groups.items():
        headline = f"{action} → {target}:" if target else f"{action}:"
        try:
            operation = await make_operation(ctx, action, target)
        except InboxError as e:
            logger.warning("%s setup failed: %s", headline, e.message)
            result = BatchResult(failures=[BatchFailure(i, e, 0) for i in ids])
        else:
            result = await ctx.batch.execute(ids, operation)
        summaries.append({"action": action, "target": target, **batch_payload(result, headline)})
        succeeded += len(result.successes)
        failed += len(result.failures)
        logger.info("%s %d/%d succeeded", headline, len(result.successes), result.total)

    return {
        "success": failed == 0,
        "organized_count": succeeded,
        "failed_count": failed,
        "groups": summaries,
        "report": "\n\n".join(s["report"] for s in summaries),
    }
