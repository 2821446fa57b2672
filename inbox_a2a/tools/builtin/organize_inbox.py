"""organize_inbox: apply AI-interpreted rules to recent messages.

The plan lists one concrete operation per matched message (first matching
rule wins). The approval payload carries those operations, so committing does
not re-read the mailbox or re-run the rules.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from inbox_a2a.approval.envelope import ActionEnvelope, ActionType, Preview
from inbox_a2a.approval.protocol import Plan
from inbox_a2a.tools.base import APPROVAL_PROPERTIES, ApprovableTool, ToolContext
from inbox_a2a.tools.builtin.bulk import (
    OPERATIONS_SCHEMA,
    message_matches,
    normalize_action,
    run_grouped,
)

logger = logging.getLogger(__name__)

DEFAULT_SCOPE_LIMIT = 100
PREVIEW_SAMPLE = 10


def assess_organization_risks(operations: list[dict[str, Any]], threshold: int) -> list[str]:
    risks = []
    if len(operations) > threshold:
        risks.append(f"Large number of emails will be affected ({len(operations)})")
    deletes = sum(1 for op in operations if op["action"] == "delete")
    if deletes:
        risks.append(f"{deletes} emails will be permanently deleted")
    risks.append("AI-interpreted organization rules based on your instruction")
    return risks


class OrganizeInboxTool(ApprovableTool):
    name = "organize_inbox"
    description = (
        "Organize messages with a natural-language instruction such as "
        "'move receipts to Finance and archive newsletters'. Dry run by default."
    )
    parameters = {
        "type": "object",
        "properties": {
            "instruction": {"type": "string", "minLength": 1},
            "scope": {
                "type": "object",
                "properties": {
                    "folder": {"type": "string"},
                    "limit": {"type": "integer", "minimum": 1, "maximum": 500},
                },
            },
            "dry_run": {"type": "boolean", "default": True},
            **APPROVAL_PROPERTIES,
        },
        "required": ["instruction"],
    }
    action_type = ActionType.ORGANIZE_INBOX
    action_data_schema = {
        "type": "object",
        "properties": {
            "operations": OPERATIONS_SCHEMA,
            "instruction": {"type": "string"},
            "rules": {"type": "array"},
        },
        "required": ["operations"],
    }

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        instruction = arguments["instruction"]
        scope = arguments.get("scope") or {}

        rules = await ctx.ai.understand_organization_intent(instruction)
        folder_id = None
        if scope.get("folder"):
            folder_id = await ctx.folders.resolve_id(scope["folder"])
        messages = await ctx.mailbox.list_messages(
            folder_id=folder_id, limit=scope.get("limit", DEFAULT_SCOPE_LIMIT)
        )

        operations: list[dict[str, Any]] = []
        preview_actions: list[str] = []
        errors: list[str] = []
        for message in messages:
            rule = next((r for r in rules if message_matches(message, r.condition)), None)
            if rule is None:
                continue
            action = normalize_action(rule.action)
            if action is None:
                errors.append(f"Unsupported action '{rule.action}' for message {message.id}")
                continue
            if action == "move" and not rule.target:
                errors.append(f"Move rule '{rule.condition}' has no target folder (message {message.id})")
                continue
            operations.append({"message_id": message.id, "action": action, "target": rule.target})
            sender = message.sender.email if message.sender else "unknown"
            text = f'{rule.action} email "{message.subject}" from {sender}'
            if rule.target:
                text += f' to folder "{rule.target}"'
            preview_actions.append(text)

        result = {
            "organized_count": len(operations),
            "total_actions": len(operations),
            "preview_actions": preview_actions,
            "errors": errors,
            "rules": [r.to_dict() for r in rules],
            "operations": operations,
            "dry_run": arguments.get("dry_run", True),
        }
        if arguments.get("dry_run", True) or not operations:
            return Plan.done(result)

        envelope = ActionEnvelope(
            action_type=ActionType.ORGANIZE_INBOX,
            action_data={
                "operations": operations,
                "instruction": instruction,
                "rules": result["rules"],
            },
            preview=Preview(
                summary=f'Organize {len(operations)} emails based on: "{instruction}"',
                details={
                    "instruction": instruction,
                    "total_actions": len(operations),
                    "actions_by_type": dict(Counter(op["action"] for op in operations)),
                    "preview_actions": preview_actions[:PREVIEW_SAMPLE],
                    "organization_rules": result["rules"],
                },
                risks=assess_organization_risks(operations, ctx.risk.large_batch_threshold),
            ),
        )
        return Plan.needs_approval(envelope)

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        result = await run_grouped(ctx, action_data["operations"])
        result["approval_executed"] = arguments.get("approved") is True
        result["message"] = f"Organized {result['organized_count']} emails"
        return result
