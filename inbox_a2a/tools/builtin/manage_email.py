"""manage_email: send, reply, forward or draft an email from a natural-language request.

Sending always goes through an approval envelope unless the caller passes
``require_approval: false``. Drafts are created immediately.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from inbox_a2a.ai.email_ai import EmailIntent, extract_addresses
from inbox_a2a.approval.envelope import ActionEnvelope, ActionType, Preview
from inbox_a2a.approval.protocol import Plan
from inbox_a2a.config.schema import RiskConfig
from inbox_a2a.core.errors import ToolError
from inbox_a2a.mailbox.base import EmailDraft, Message, Participant
from inbox_a2a.tools.base import APPROVAL_PROPERTIES, ApprovableTool, ToolContext

logger = logging.getLogger(__name__)

SENDING_ACTIONS = ("send", "reply", "forward")

_PARTICIPANTS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {"email": {"type": "string", "minLength": 3}, "name": {"type": "string"}},
        "required": ["email"],
    },
}

EMAIL_CONTENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "to": {**_PARTICIPANTS, "minItems": 1},
        "cc": _PARTICIPANTS,
        "bcc": _PARTICIPANTS,
        "subject": {"type": "string"},
        "body": {"type": "string"},
        "reply_to_message_id": {"type": "string"},
    },
    "required": ["to", "subject", "body"],
}


def to_html(text: str) -> str:
    """Minimal plain-text to HTML conversion for outgoing bodies."""
    return text.replace("\n\n", "<br><br>").replace("\n", "<br>")


def assess_email_risks(draft: EmailDraft, action: str, risk: RiskConfig) -> list[str]:
    """Warnings shown alongside a send preview."""
    risks = []
    total = len(draft.recipients)
    if total > risk.recipient_warning_threshold:
        risks.append(f"Sending to {total} recipients")

    if risk.internal_email_domain:
        suffix = f"@{risk.internal_email_domain.lower()}"
        if any(not p.email.lower().endswith(suffix) for p in draft.recipients):
            risks.append("Contains external recipients")

    if action == "reply" and total > 2:
        risks.append("Reply-all to multiple recipients")
    return risks


class ManageEmailTool(ApprovableTool):
    name = "manage_email"
    description = (
        "Send, reply to, forward or draft an email described in natural language. "
        "Sending returns a preview for approval unless require_approval is false."
    )
    parameters = {
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": ["send", "reply", "forward", "draft"]},
            "query": {"type": "string", "minLength": 1, "description": "What to write and to whom"},
            "context_message_id": {
                "type": "string",
                "description": "Message being replied to or forwarded",
            },
            "user_name": {"type": "string"},
            "user_email": {"type": "string"},
            **APPROVAL_PROPERTIES,
        },
        "required": ["action", "query"],
    }
    action_type = ActionType.SEND_EMAIL
    action_data_schema = {
        "type": "object",
        "properties": {
            "email_content": EMAIL_CONTENT_SCHEMA,
            "original_params": {"type": "object"},
            "intent": {"type": "object"},
        },
        "required": ["email_content"],
    }

    async def plan(self, arguments: dict[str, Any], ctx: ToolContext) -> Plan:
        action = arguments["action"]
        query = arguments["query"]
        sender_name = arguments.get("user_name") or ctx.user_context.get("user_name")

        original = await self._context_message(arguments, ctx)
        sender_email = original.sender.email if original and original.sender and action == "reply" else None

        direct = extract_addresses(query)
        if direct:
            logger.debug("Using literal addresses from query: %s", direct)
            intent = EmailIntent(intent=action, recipients=direct, key_points=[query])
        else:
            intent = await ctx.ai.understand_query(query, sender_email)
        if sender_email and sender_email not in intent.recipients:
            intent.recipients.append(sender_email)

        unresolved = [r for r in intent.recipients if "@" not in r]
        if unresolved:
            return Plan.done(_contact_not_found(unresolved))
        if not intent.recipients:
            raise ToolError("No recipients found. Include at least one email address.")

        generated = await ctx.ai.generate_email_content(intent, original, sender_name)
        draft = EmailDraft(
            to=[Participant(e) for e in generated.to or intent.recipients],
            cc=[Participant(e) for e in generated.cc],
            bcc=[Participant(e) for e in generated.bcc],
            subject=generated.subject or intent.subject or "(no subject)",
            body=generated.body,
        )
        _apply_thread_context(draft, action, original)

        if action == "draft":
            draft_id = await ctx.mailbox.create_draft(_html_draft(draft))
            return Plan.done({
                "success": True,
                "draft_id": draft_id,
                "message": "Draft created successfully",
            })

        envelope = ActionEnvelope(
            action_type=ActionType.SEND_EMAIL,
            action_data={
                "email_content": draft.to_dict(),
                "original_params": {
                    "action": action,
                    "query": query,
                    "context_message_id": arguments.get("context_message_id"),
                },
                "intent": dataclasses.asdict(intent),
            },
            preview=Preview(
                summary=f"{action.capitalize()} email to {', '.join(p.email for p in draft.to)}",
                details={
                    "to": [p.email for p in draft.to],
                    "cc": [p.email for p in draft.cc],
                    "bcc": [p.email for p in draft.bcc],
                    "subject": draft.subject,
                    "body": draft.body,
                    "action": action,
                    "tone": intent.tone,
                    "urgency": intent.urgency,
                },
                risks=assess_email_risks(draft, action, ctx.risk),
            ),
        )
        return Plan.needs_approval(envelope)

    async def commit(
        self,
        action_data: dict[str, Any],
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        draft = EmailDraft.from_dict(action_data["email_content"])
        message_id = await ctx.mailbox.send_message(_html_draft(draft))
        logger.info("Sent email %s to %d recipient(s)", message_id, len(draft.recipients))
        return {
            "success": True,
            "message_id": message_id,
            "message": "Email sent successfully",
            "approval_executed": arguments.get("approved") is True,
        }

    async def _context_message(
        self, arguments: dict[str, Any], ctx: ToolContext
    ) -> Message | None:
        message_id = arguments.get("context_message_id")
        if not message_id or arguments["action"] not in ("reply", "forward"):
            return None
        return await ctx.mailbox.find_message(message_id)


def _apply_thread_context(draft: EmailDraft, action: str, original: Message | None) -> None:
    if original is None:
        return
    if action == "reply":
        draft.reply_to_message_id = original.id
        if not draft.subject.startswith("Re:"):
            draft.subject = f"Re: {original.subject}"
    elif action == "forward":
        if not draft.subject.startswith("Fwd:"):
            draft.subject = f"Fwd: {original.subject}"
        draft.body += f"\n\n--- Original Message ---\n{original.body or original.snippet}"


def _html_draft(draft: EmailDraft) -> EmailDraft:
    return dataclasses.replace(draft, body=to_html(draft.body))


def _contact_not_found(names: list[str]) -> dict[str, Any]:
    return {
        "success": False,
        "error": "contact_not_found",
        "message": (
            f"Could not find email addresses for: {', '.join(names)}. "
            "Please use full email addresses."
        ),
        "suggestions": [
            "Use the full email address (e.g., sarah@example.com)",
            "Check if the contact exists in your address book",
        ],
    }
