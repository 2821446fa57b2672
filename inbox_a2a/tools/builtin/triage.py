"""Bulk triage by message id: flag/folder updates and archiving.

Both tools hand their ids to the batch executor. Rate limiting and server
errors are retried; anything else fails only the affected message.
"""

from __future__ import annotations

import logging
from typing import Any

from inbox_a2a.approval.envelope import ActionEnvelope, ActionType, Preview
from inbox_a2a.approval.protocol import Plan
from inbox_a2a.core.errors import ErrorKind, MailboxError, ValidationError
from inbox_a2a.mailbox.base import MailboxClient
from inbox_a2a.tools.base import APPROVAL_PROPERTIES, ApprovableTool, ToolContext
from inbox_a2a.tools.builtin.bulk import batch_payload

logger = logging.getLogger(__name__)

MAX_ARCHIVE_IDS = 50

_IDS = {"type": "array", "items": {"type": "string", "minLength": 1}, "minItems": 1}
_FOLDER_IDS = {"type": "array", "items": {"type": "string", "minLength": 1}}

CHANGE_KEYS = (
    "set_unread",
    "set_starred",
    "move_to_folder_id",
    "add_folder_ids",
    "remove_folder_ids",
)

CHANGES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "set_unread": {"type": "boolean"},
        "set_starred": {"type": "boolean"},
        "move_to_folder_id": {"type": "string", "minLength": 1},
        "add_folder_ids": _FOLDER_IDS,
        "remove_folder_ids": _FOLDER_IDS,
    },
    "additionalProperties": False,
    "minProperties": 1,
    # A move replaces the folder list, so it excludes add/remove.
    "not": {
        "anyOf": [
            {"required": ["move_to_folder_id", "add_folder_ids"]},
            {"required": ["move_to_folder_id", "remove_folder_ids"]},
        ]
    },
}


def make_triage_update(mailbox: MailboxClient, changes: dict[str, Any]):
    """Build the per-message update for a set of triage changes.

    Folder additions/removals read the message's current folders first. A
    result with no folders left is a structural failure; an update that
    changes nothing is skipped and counts as success.
    """
    async def update(message_id: str) -> None:
        folders = None
        if changes.get("move_to_folder_id"):
            folders = [changes["move_to_folder_id"]]
        elif changes.get("add_folder_ids") or changes.get("remove_folder_ids"):
            current = (await mailbox.find_message(message_id)).folders
            updated = [f for f in current if f not in (changes.get("remove_folder_ids") or [])]
            for folder_id in changes.get("add_folder_ids") or []:
                if folder_id not in updated:
                    updated.append(folder_id)
            if current and not updated:
                raise MailboxError(
                    f"Update for message {message_id} would leave it without any folders.",
                    ErrorKind.INVALID,
                )
            if set(updated) != set(current):
                folders = updated

        unread = changes.get("set_unread")
        starred = changes.get("set_starred")
        if folders is None and unread is None and starred is None:
            logger.debug("Skipping no-op update for message %s", message_id)
            return
        await mailbox.update_message(message_id, unread=unread, starred=starred, folders=folders)

    return update


def _describe_changes(changes: dict[str, Any]) -> list[str]:
    parts = []
    if "set_unread" in changes:
        parts.append("mark unread" if changes["set_unread"] else "mark read")
    if "set_starred" in changes:
        parts.append("star" if changes["set_starred"] else "unstar")
    if changes.get("move_to_folder_id"):
        parts.append(f"move to {changes['move_to_folder_id']}")
    if changes.get("add_folder_ids"):
        parts.append(f"add folders {', '.join(changes['add_folder_ids'])}")
    if changes.get("remove_folder_ids"):
        parts.append(f"remove folders {', '.join(changes['remove_folder_ids'])}")
    return parts


class TriageUpdateEmailsTool(ApprovableTool):
    name = "triage_update_emails"
    description = (
        "Update read/starred state or folders for many messages at once. "
        "Returns a preview for approval unless require_approval is false."
    )
    parameters = {
        "type": "object",
        "properties": {
            "message_ids": _IDS,
            "set_unread": {"type": "boolean"},
            "set_starred": {"type": "boolean"},
            "move_to_folder_id": {"type": "string", "minLength": 1},
            "add_folder_ids": _FOLDER_IDS,
            "remove_folder_ids": _FOLDER_IDS,
            **APPROVAL_PROPERTIES,
        },
        "required": ["message_ids"],
    }
    action_type = ActionType.TRIAGE_UPDATE
    action_data_schema = {
        "type": "object",
        "properties": {"message_ids": _IDS, "changes": CHANGES_SCHEMA},
        "required": ["message_ids", "changes"],
    }

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        changes = {k: arguments[k] for k in CHANGE_KEYS if arguments.get(k) not in (None, [])}
        if not changes:
            raise ValidationError("No changes requested. Set at least one of: " + ", ".join(CHANGE_KEYS))
        if "move_to_folder_id" in changes and (
            "add_folder_ids" in changes or "remove_folder_ids" in changes
        ):
            raise ValidationError(
                "move_to_folder_id replaces all folders; "
                "it cannot be combined with add_folder_ids or remove_folder_ids"
            )

        ids = list(dict.fromkeys(arguments["message_ids"]))
        described = _describe_changes(changes)
        risks = []
        if len(ids) > ctx.risk.large_batch_threshold:
            risks.append(f"Large number of emails will be affected ({len(ids)})")
        if changes.get("move_to_folder_id"):
            risks.append(f"{len(ids)} emails will be moved from their current folders")

        return Plan.needs_approval(ActionEnvelope(
            action_type=ActionType.TRIAGE_UPDATE,
            action_data={"message_ids": ids, "changes": changes},
            preview=Preview(
                summary=f"Update {len(ids)} emails: {'; '.join(described)}",
                details={"message_ids": ids, "changes": changes, "total_emails": len(ids)},
                risks=risks,
            ),
        ))

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        operation = make_triage_update(ctx.mailbox, action_data["changes"])
        result = await ctx.batch.execute(action_data["message_ids"], operation)
        payload = batch_payload(result, "Triage update complete.")
        payload["approval_executed"] = arguments.get("approved") is True
        return payload


class BatchArchiveEmailsTool(ApprovableTool):
    name = "batch_archive_emails"
    description = (
        f"Move up to {MAX_ARCHIVE_IDS} messages to the archive folder. "
        "Returns a preview for approval unless require_approval is false."
    )
    parameters = {
        "type": "object",
        "properties": {
            "message_ids": {**_IDS, "maxItems": MAX_ARCHIVE_IDS},
            **APPROVAL_PROPERTIES,
        },
        "required": ["message_ids"],
    }
    action_type = ActionType.ARCHIVE_MESSAGES
    action_data_schema = {
        "type": "object",
        "properties": {"message_ids": {**_IDS, "maxItems": MAX_ARCHIVE_IDS}},
        "required": ["message_ids"],
    }

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        ids = list(dict.fromkeys(arguments["message_ids"]))
        return Plan.needs_approval(ActionEnvelope(
            action_type=ActionType.ARCHIVE_MESSAGES,
            action_data={"message_ids": ids},
            preview=Preview(
                summary=f"Archive {len(ids)} emails",
                details={"message_ids": ids, "total_emails": len(ids)},
                risks=["Emails will be moved out of the inbox"],
            ),
        ))

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        archive_id = await ctx.folders.archive_id()
        mailbox = ctx.mailbox

        async def archive(message_id: str) -> None:
            await mailbox.update_message(message_id, folders=[archive_id])

        result = await ctx.batch.execute(action_data["message_ids"], archive)
        payload = batch_payload(result, "Archive complete.")
        payload["approval_executed"] = arguments.get("approved") is True
        return payload
