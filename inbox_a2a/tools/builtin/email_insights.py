"""email_insights: summaries and statistics over recent mail.

Read-only. The query picks one insight type; each computes its statistics
from the mailbox and asks the AI for a narrative on top. Without an LLM the
narrative is a fixed sentence built from the same statistics.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any

from inbox_a2a.ai.email_ai import INSIGHT_TYPES, TIME_PERIODS, EmailAnalysis
from inbox_a2a.mailbox.base import Message
from inbox_a2a.tools.base import BaseTool, ToolContext
from inbox_a2a.tools.builtin.find_emails import IMPORTANT_SCORE, needs_response

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"day": 1, "week": 7, "month": 30}
ANALYSIS_SAMPLE = 100
TOP_SENDERS = 5
TOP_CONTACTS = 10


def _important(messages: list[Message], analysis: list[EmailAnalysis]) -> list[dict[str, Any]]:
    by_id = {m.id: m for m in messages}
    important = []
    for a in analysis:
        if a.importance_score < IMPORTANT_SCORE or a.email_id not in by_id:
            continue
        message = by_id[a.email_id]
        important.append({
            "id": a.email_id,
            "subject": message.subject,
            "from": message.sender.email if message.sender else None,
            "reason": a.reason,
            "action_required": a.action_required,
        })
    return important


def _categories(analysis: list[EmailAnalysis]) -> dict[str, int]:
    return dict(Counter(a.category for a in analysis))


def _category_text(categories: dict[str, int]) -> str:
    return ", ".join(f"{c}: {n}" for c, n in categories.items()) or "none"


class EmailInsightsTool(BaseTool):
    name = "email_insights"
    description = (
        "Answer questions about recent mail: daily or weekly summaries, important "
        "items, messages awaiting a reply, volume analytics and frequent contacts."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "minLength": 1,
                "description": "e.g. 'what needs my reply?' or 'summarize my week'",
            },
            "time_period": {"type": "string", "enum": list(TIME_PERIODS)},
        },
        "required": ["query"],
    }

    def __init__(self, clock=time.time) -> None:
        self._clock = clock

    async def execute(self, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        intent = await ctx.ai.understand_insights_query(arguments["query"])
        insight_type = intent.insight_type if intent.insight_type in INSIGHT_TYPES else "daily_summary"
        period = intent.time_period or arguments.get("time_period") or "week"

        logger.debug("email_insights type=%s period=%s", insight_type, period)
        if insight_type == "weekly_summary":
            result = await self._summary(ctx, insight_type, days=7, limit=500)
        elif insight_type == "important_items":
            result = await self._important_items(ctx)
        elif insight_type == "response_needed":
            result = await self._response_needed(ctx)
        elif insight_type == "analytics":
            result = await self._analytics(ctx, period)
        elif insight_type == "relationships":
            result = await self._relationships(ctx)
        else:
            result = await self._summary(ctx, insight_type, days=1, limit=100)
        return {"insight_type": insight_type, **result}

    def _since(self, days: int) -> int:
        return int(self._clock() - days * 86400)

    async def _narrate(
        self, ctx: ToolContext, insight_type: str, facts: dict[str, Any], fallback: str
    ) -> dict[str, Any]:
        narrative = await ctx.ai.narrate_insights(insight_type, facts, fallback)
        insights = dict(facts)
        if narrative["highlights"]:
            insights["highlights"] = narrative["highlights"]
        if narrative["recommendations"]:
            insights["recommendations"] = narrative["recommendations"]
        return {"summary": narrative["summary"], "insights": insights}

    async def _summary(
        self, ctx: ToolContext, insight_type: str, days: int, limit: int
    ) -> dict[str, Any]:
        label = "today" if days == 1 else "this week"
        messages = await ctx.mailbox.list_messages(received_after=self._since(days), limit=limit)
        if not messages:
            return {
                "summary": f"No emails received {label}. Your inbox is clear!",
                "insights": {"total_emails": 0},
            }

        analysis = await ctx.ai.analyze_importance(messages[:ANALYSIS_SAMPLE])
        unread = sum(1 for m in messages if m.unread)
        important = _important(messages, analysis)
        categories = _categories(analysis)
        facts: dict[str, Any] = {
            "total_emails": len(messages),
            "unread_count": unread,
            "important_emails": important,
            "categories": categories,
        }
        if days > 1:
            facts["daily_average"] = round(len(messages) / days)
            per_day = Counter(
                datetime.fromtimestamp(m.date, tz=timezone.utc).date().isoformat()
                for m in messages
            )
            facts["emails_by_day"] = dict(sorted(per_day.items()))

        fallback = (
            f"You received {len(messages)} emails {label} ({unread} unread). "
            f"{len(important)} are marked as important. "
            f"Categories: {_category_text(categories)}."
        )
        return await self._narrate(ctx, insight_type, facts, fallback)

    async def _important_items(self, ctx: ToolContext) -> dict[str, Any]:
        messages = await ctx.mailbox.list_messages(unread=True, limit=50)
        if not messages:
            return {
                "summary": "No unread emails to analyze.",
                "insights": {"important_emails": [], "action_items": []},
            }

        analysis = await ctx.ai.analyze_importance(messages)
        important = _important(messages, analysis)
        by_id = {m.id: m for m in messages}
        action_items = []
        for item in important:
            if item["action_required"]:
                extracted = await ctx.ai.extract_action_items(by_id[item["id"]])
                action_items.extend(i.to_dict() for i in extracted)

        facts = {
            "total_analyzed": len(messages),
            "important_emails": important,
            "action_items": action_items,
        }
        fallback = f"Found {len(important)} important emails that require attention."
        return await self._narrate(ctx, "important_items", facts, fallback)

    async def _response_needed(self, ctx: ToolContext) -> dict[str, Any]:
        messages = await ctx.mailbox.list_messages(limit=50)
        pending = [m for m in messages if needs_response(m, messages)]
        if not pending:
            return {
                "summary": "No emails currently need responses.",
                "insights": {"needs_response": [], "total_needing_response": 0},
            }

        scores = {a.email_id: a for a in await ctx.ai.analyze_importance(pending)}
        ranked = []
        for message in pending:
            a = scores.get(message.id)
            ranked.append({
                "id": message.id,
                "subject": message.subject,
                "from": message.sender.email if message.sender else None,
                "importance_score": a.importance_score if a else 0.5,
                "reason": a.reason if a else "Needs response",
            })
        ranked.sort(key=lambda r: r["importance_score"], reverse=True)

        high = sum(1 for r in ranked if r["importance_score"] >= IMPORTANT_SCORE)
        facts = {"needs_response": ranked, "total_needing_response": len(ranked)}
        fallback = f"{len(ranked)} emails need responses. {high} are high priority."
        return await self._narrate(ctx, "response_needed", facts, fallback)

    async def _analytics(self, ctx: ToolContext, period: str) -> dict[str, Any]:
        days = PERIOD_DAYS.get(period, 7)
        messages = await ctx.mailbox.list_messages(received_after=self._since(days), limit=500)
        if not messages:
            return {
                "summary": f"No emails found for the past {period}.",
                "insights": {"total_emails": 0},
            }

        senders = Counter(m.sender.email for m in messages if m.sender)
        top = [{"email": e, "count": n} for e, n in senders.most_common(TOP_SENDERS)]
        analysis = await ctx.ai.analyze_importance(messages[:ANALYSIS_SAMPLE])
        per_day = len(messages) / days
        facts = {
            "time_period": period,
            "total_emails": len(messages),
            "emails_per_day": round(per_day, 1),
            "unread_count": sum(1 for m in messages if m.unread),
            "top_senders": top,
            "categories": _categories(analysis),
        }
        fallback = (
            f"Email analytics for the past {period}: {len(messages)} total emails "
            f"({per_day:.1f}/day). Top sender: {top[0]['email'] if top else 'None'}."
        )
        return await self._narrate(ctx, "analytics", facts, fallback)

    async def _relationships(self, ctx: ToolContext) -> dict[str, Any]:
        messages = await ctx.mailbox.list_messages(received_after=self._since(30), limit=500)
        if not messages:
            return {
                "summary": "No emails found to analyze relationships.",
                "insights": {"key_relationships": []},
            }

        user_email = ctx.user_context.get("user_email") or _likely_owner(messages)
        stats: dict[str, dict[str, Any]] = {}
        for message in messages:
            from_me = bool(message.sender and message.sender.email == user_email)
            if from_me:
                contact = message.to[0].email if message.to else None
            else:
                contact = message.sender.email if message.sender else None
            if not contact:
                continue
            entry = stats.setdefault(contact, {"contact": contact, "sent": 0, "received": 0})
            entry["sent" if from_me else "received"] += 1

        ranked = sorted(stats.values(), key=lambda s: s["sent"] + s["received"], reverse=True)
        top = ranked[:TOP_CONTACTS]
        facts = {"user_email": user_email, "key_relationships": top}
        listed = ", ".join(f"{s['contact']} ({s['sent'] + s['received']})" for s in top[:3])
        fallback = f"Your most frequent contacts over the past 30 days: {listed or 'none'}."
        return await self._narrate(ctx, "relationships", facts, fallback)


def _likely_owner(messages: list[Message]) -> str | None:
    """The address most often in ``to``, which is usually the mailbox owner."""
    recipients = Counter(p.email for m in messages for p in m.to)
    if not recipients:
        return None
    return recipients.most_common(1)[0][0]
