"""smart_folders: create, update, list and apply rule-based folders.

Folder rules are not persisted. ``create`` and ``update`` return the generated
rules; ``apply`` takes them back through the ``rules`` argument, or derives
them again from the query.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from inbox_a2a.approval.envelope import ActionEnvelope, ActionType, Preview
from inbox_a2a.approval.protocol import Plan
from inbox_a2a.core.errors import ToolError
from inbox_a2a.mailbox.base import Message
from inbox_a2a.tools.base import APPROVAL_PROPERTIES, ApprovableTool, ToolContext
from inbox_a2a.tools.builtin.bulk import batch_payload

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 100
PREVIEW_SAMPLE = 5
_FOLDER_IN_QUERY = re.compile(r"folder\s+(?:[\"']([^\"']+)[\"']|(\S+))", re.IGNORECASE)


def detect_intent(query: str) -> str:
    q = query.lower()
    if any(w in q for w in ("list", "show", "what folders")):
        return "list"
    if any(w in q for w in ("create", "make", "set up")):
        return "create"
    if any(w in q for w in ("update", "change", "modify")):
        return "update"
    if any(w in q for w in ("apply", "organize", "move emails")):
        return "apply"
    return "create"


class SmartFoldersTool(ApprovableTool):
    name = "smart_folders"
    description = (
        "Manage rule-based folders: list, create or update a folder from a "
        "description, or apply a folder's rules to move matching messages."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "minLength": 1},
            "folder_name": {"type": "string"},
            "rules": {"type": "array", "items": {"type": "string"}},
            "dry_run": {"type": "boolean", "default": True},
            **APPROVAL_PROPERTIES,
        },
        "required": ["query"],
    }
    action_type = ActionType.APPLY_SMART_FOLDER
    action_data_schema = {
        "type": "object",
        "properties": {
            "folder_id": {"type": "string", "minLength": 1},
            "folder_name": {"type": "string"},
            "message_ids": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["folder_id", "message_ids"],
    }

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        intent = detect_intent(arguments["query"])
        if intent == "list":
            return Plan.done(await self._list(ctx))
        if intent == "create":
            return Plan.done(await self._create(arguments, ctx))
        if intent == "update":
            return Plan.done(await self._update(arguments, ctx))
        return await self._plan_apply(arguments, ctx)

    async def _list(self, ctx: ToolContext) -> dict[str, Any]:
        folders = [
            f for f in await ctx.folders.folders()
            if not any(a.lower() == "\\system" for a in f.attributes)
        ]
        return {
            "smart_folders": [
                {"name": f.name, "folder_id": f.id, "total_count": f.total_count}
                for f in folders
            ],
            "total_count": len(folders),
        }

    async def _create(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        generated = await ctx.ai.generate_smart_folder_rules(arguments["query"])
        name = arguments.get("folder_name") or generated["name"]
        folder = await ctx.folders.ensure(name)
        return {
            "success": True,
            "folder_id": folder.id,
            "folder_name": folder.name,
            "rules": generated["rules"],
            "description": generated["description"],
            "message": f'Smart folder "{folder.name}" created with {len(generated["rules"])} rules',
        }

    async def _update(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        name = arguments.get("folder_name")
        if not name:
            match = _FOLDER_IN_QUERY.search(arguments["query"])
            if not match:
                raise ToolError(
                    "Could not determine which folder to update. Please specify the folder name."
                )
            name = (match.group(1) or match.group(2)).strip()
        folder = await ctx.folders.find(name)
        if folder is None:
            raise ToolError(f'Folder "{name}" not found')
        generated = await ctx.ai.generate_smart_folder_rules(
            f'Update folder "{folder.name}" based on: {arguments["query"]}'
        )
        return {
            "success": True,
            "folder_id": folder.id,
            "folder_name": folder.name,
            "rules": generated["rules"],
            "description": generated["description"],
            "message": f'Smart folder "{folder.name}" updated successfully',
        }

    async def _plan_apply(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        rules = arguments.get("rules")
        name = arguments.get("folder_name")
        if not rules or not name:
            generated = await ctx.ai.generate_smart_folder_rules(arguments["query"])
            rules = rules or generated["rules"]
            name = name or generated["name"]

        folder = await ctx.folders.find(name)
        if folder is None:
            return Plan.done({
                "success": False,
                "error": f'Folder "{name}" not found. Please create it first.',
            })

        matches: dict[str, Message] = {}
        for rule in rules:
            for message in await ctx.mailbox.list_messages(search=rule, limit=SEARCH_LIMIT):
                if folder.id not in message.folders:
                    matches.setdefault(message.id, message)

        preview = {
            "folder_name": folder.name,
            "folder_id": folder.id,
            "rules": list(rules),
            "emails_to_move": [m.summary() for m in matches.values()],
            "total_count": len(matches),
        }
        if arguments.get("dry_run", True) or not matches:
            return Plan.done({"success": True, "preview": preview})

        risks = []
        if len(matches) > ctx.risk.large_batch_threshold:
            risks.append(f"Large number of emails will be moved ({len(matches)})")
        risks.append("Emails will be moved from their current folders")

        envelope = ActionEnvelope(
            action_type=ActionType.APPLY_SMART_FOLDER,
            action_data={
                "folder_id": folder.id,
                "folder_name": folder.name,
                "message_ids": list(matches),
            },
            preview=Preview(
                summary=f'Apply smart folder "{folder.name}" to {len(matches)} emails',
                details={
                    "folder_name": folder.name,
                    "total_emails": len(matches),
                    "sample_emails": preview["emails_to_move"][:PREVIEW_SAMPLE],
                    "action": "move_to_folder",
                },
                risks=risks,
            ),
        )
        return Plan.needs_approval(envelope)

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        folder_id = action_data["folder_id"]
        mailbox = ctx.mailbox

        async def move(message_id: str) -> None:
            await mailbox.update_message(message_id, folders=[folder_id])

        result = await ctx.batch.execute(action_data["message_ids"], move)
        name = action_data.get("folder_name") or folder_id
        payload = batch_payload(result, f'Applied smart folder "{name}":')
        payload["emails_processed"] = len(result.successes)
        payload["approval_executed"] = arguments.get("approved") is True
        return payload
