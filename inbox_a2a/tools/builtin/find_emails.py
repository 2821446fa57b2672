"""find_emails: natural-language search with optional AI analysis.

Read-only. The query is turned into provider filters, and ``analysis_type``
decides what comes back:

- full: the matching messages
- summary: a prose summary only
- detailed: messages plus per-message importance analysis
- action_items: analysis plus extracted tasks; messages narrowed to those
  still awaiting a reply when the query asks about responding
- priority: messages and analysis ordered by importance
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any

from inbox_a2a.ai.email_ai import ActionItem, EmailAnalysis, is_automated_sender
from inbox_a2a.mailbox.base import Message
from inbox_a2a.tools.base import BaseTool, ToolContext

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("full", "summary", "detailed", "action_items", "priority")
DEFAULT_LIMIT = 10
IMPORTANT_SCORE = 0.7


def received_after(days_back: int | None, now: float | None = None) -> int | None:
    """Unix timestamp ``days_back`` days before ``now``, or None for no bound."""
    if not days_back:
        return None
    return int((now if now is not None else time.time()) - days_back * 86400)


def needs_response(message: Message, batch: list[Message]) -> bool:
    """Heuristic: a person wrote it and nothing else in its thread was seen."""
    if message.sender is None or is_automated_sender(message):
        return False
    if message.thread_id is None:
        return True
    return sum(1 for m in batch if m.thread_id == message.thread_id) == 1


def sender_label(message: Message | None) -> str:
    if message is None or message.sender is None:
        return "Unknown"
    return message.sender.name or message.sender.email.split("@")[0]


def detailed_summary(analysis: list[EmailAnalysis]) -> str:
    important = sum(1 for a in analysis if a.importance_score >= IMPORTANT_SCORE)
    actionable = sum(1 for a in analysis if a.action_required)
    categories = Counter(a.category for a in analysis)
    by_category = ", ".join(f"{c.replace('_', ' ')} ({n})" for c, n in categories.items())
    return (
        f"Analyzed {len(analysis)} emails: {important} important, "
        f"{actionable} need action. By category: {by_category}."
    )


def action_summary(count: int, items: list[ActionItem]) -> str:
    summary = f"Found {count} emails with {len(items)} action items"
    details = []
    high = sum(1 for i in items if i.priority == "high")
    deadlines = sum(1 for i in items if i.deadline)
    if high:
        details.append(f"{high} high priority")
    if deadlines:
        details.append(f"{deadlines} with deadlines")
    if details:
        summary += f" ({', '.join(details)})"
    return summary + "."


class FindEmailsTool(BaseTool):
    name = "find_emails"
    description = (
        "Search the mailbox with a natural-language query and optionally summarize, "
        "analyze, extract action items or rank the results by priority."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "minLength": 1,
                "description": "What to look for, e.g. 'unread emails from Sarah this week'",
            },
            "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
            "analysis_type": {"type": "string", "enum": list(ANALYSIS_TYPES), "default": "full"},
        },
        "required": ["query"],
    }

    async def execute(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        query = arguments["query"]
        analysis_type = arguments.get("analysis_type", "full")

        intent = await ctx.ai.understand_search_query(query)
        messages = await ctx.mailbox.list_messages(
            search=intent.native_query() or None,
            unread=intent.unread,
            starred=intent.starred,
            received_after=received_after(intent.days_back),
            limit=arguments.get("limit", DEFAULT_LIMIT),
        )
        logger.debug("find_emails %r matched %d messages", query, len(messages))

        if not messages:
            return {
                "emails": [],
                "summary": "No emails found matching your query.",
                "total_count": 0,
                "query": query,
            }

        if analysis_type == "summary":
            return {
                "summary": await ctx.ai.summarize_messages(messages, query),
                "total_count": len(messages),
                "query": query,
            }

        result: dict[str, Any] = {
            "emails": [m.to_dict() for m in messages],
            "total_count": len(messages),
            "query": query,
        }
        if analysis_type == "full":
            return result

        analysis = await ctx.ai.analyze_importance(messages)
        result["analysis"] = [a.to_dict() for a in analysis]

        if analysis_type == "detailed":
            result["summary"] = detailed_summary(analysis)

        elif analysis_type == "action_items":
            items: list[ActionItem] = []
            for message in messages:
                items.extend(await ctx.ai.extract_action_items(message))
            result["action_items"] = [i.to_dict() for i in items]
            result["summary"] = action_summary(len(messages), items)
            if any(w in query.lower() for w in ("respond", "reply")):
                pending = [m for m in messages if needs_response(m, messages)]
                result["emails"] = [m.to_dict() for m in pending]
                result["total_count"] = len(pending)

        elif analysis_type == "priority":
            ranked = sorted(analysis, key=lambda a: a.importance_score, reverse=True)
            by_id = {m.id: m for m in messages}
            order = [a.email_id for a in ranked]
            order += [m.id for m in messages if m.id not in order]
            result["analysis"] = [a.to_dict() for a in ranked]
            result["emails"] = [by_id[i].to_dict() for i in order if i in by_id]
            top = ", ".join(sender_label(by_id.get(a.email_id)) for a in ranked[:3])
            result["summary"] = (
                f"{len(messages)} emails sorted by priority. Most important from: {top}."
            )

        return result
