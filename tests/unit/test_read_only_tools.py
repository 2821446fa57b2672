"""Tests for the read-only find_emails and email_insights tools."""

from typing import Any

import pytest
from fakes import FakeMailbox, make_message

from inbox_a2a.ai.email_ai import EmailAI
from inbox_a2a.mailbox.base import Participant
from inbox_a2a.tools.builtin.email_insights import EmailInsightsTool
from inbox_a2a.tools.builtin.find_emails import FindEmailsTool, needs_response, received_after

NOW = 1_700_000_000
DAY = 86400
ME = Participant("me@corp.com")


def ids(emails: list[dict[str, Any]]) -> list[str]:
    return [e["id"] for e in emails]


class TestFindEmails:
    """Tests for search and the analysis modes."""

    @pytest.mark.asyncio
    async def test_sender_and_topic(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "emails from bob about lunch"}, make_ctx(mailbox)
        )

        assert mailbox.list_calls[0]["search"] == "from:bob lunch"
        assert mailbox.list_calls[0]["limit"] == 10
        assert ids(result["emails"]) == ["m3"]
        assert result["emails"][0]["from"] == [{"email": "bob@example.com"}]
        assert result["total_count"] == 1
        assert "analysis" not in result

    @pytest.mark.asyncio
    async def test_no_match(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute({"query": "from zed"}, make_ctx(mailbox))
        assert result == {
            "emails": [],
            "summary": "No emails found matching your query.",
            "total_count": 0,
            "query": "from zed",
        }

    @pytest.mark.asyncio
    async def test_filters_reach_mailbox(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "unread from the last 3 days", "limit": 5}, make_ctx(mailbox)
        )

        call = mailbox.list_calls[0]
        assert call["unread"] is True
        assert call["search"] is None
        assert call["received_after"] is not None
        assert call["limit"] == 5
        # fixture messages carry date 0
        assert result["total_count"] == 0

    @pytest.mark.asyncio
    async def test_summary_only(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "everything", "analysis_type": "summary"}, make_ctx(mailbox)
        )
        assert result == {
            "summary": 'Found 3 emails matching "everything" (1 unread). From: alice, news, bob.',
            "total_count": 3,
            "query": "everything",
        }

    @pytest.mark.asyncio
    async def test_detailed(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "everything", "analysis_type": "detailed"}, make_ctx(mailbox)
        )

        assert [a["email_id"] for a in result["analysis"]] == ["m1", "m2", "m3"]
        assert result["analysis"][1]["category"] == "newsletter"
        assert result["summary"] == (
            "Analyzed 3 emails: 0 important, 2 need action. "
            "By category: other (2), newsletter (1)."
        )

    @pytest.mark.asyncio
    async def test_priority_order(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "everything", "analysis_type": "priority"}, make_ctx(mailbox)
        )

        assert ids(result["emails"]) == ["m1", "m3", "m2"]
        assert [a["email_id"] for a in result["analysis"]] == ["m1", "m3", "m2"]
        assert result["summary"] == "3 emails sorted by priority. Most important from: alice, bob, news."

    @pytest.mark.asyncio
    async def test_action_items_awaiting_reply(self, mailbox, make_ctx) -> None:
        result = await FindEmailsTool().execute(
            {"query": "what should I reply to", "analysis_type": "action_items"},
            make_ctx(mailbox),
        )

        assert [(i["task"], i["email_id"]) for i in result["action_items"]] == [
            ("Please pay", "m1"),
            ("Lunch?", "m3"),
        ]
        assert result["summary"] == "Found 3 emails with 2 action items."
        # the newsletter is automated, so it never awaits a reply
        assert ids(result["emails"]) == ["m1", "m3"]
        assert result["total_count"] == 2

    def test_received_after(self) -> None:
        assert received_after(None) is None
        assert received_after(0) is None
        assert received_after(2, now=1_000_000) == 1_000_000 - 2 * DAY

    def test_needs_response(self) -> None:
        asked = make_message("a", thread_id="t1")
        answered = make_message("b", thread_id="t2")
        reply = make_message("c", sender="me@corp.com", thread_id="t2")
        batch = [asked, answered, reply]

        assert needs_response(asked, batch)
        assert not needs_response(answered, batch)
        assert not needs_response(make_message("d", sender="noreply@ci.io"), batch)
        assert not needs_response(make_message("e", sender=None), batch)
        assert needs_response(make_message("f"), batch)


@pytest.fixture
def busy_mailbox() -> FakeMailbox:
    return FakeMailbox(
        messages=[
            make_message(
                "a1", subject="Budget review", snippet="Can you send the numbers? Urgent",
                unread=True, date=NOW - 3600, to=[ME], thread_id="t1",
            ),
            make_message(
                "a2", subject="Build failed", sender="alerts-noreply@service.io",
                unread=True, date=NOW - 7200, to=[ME], thread_id="t3",
            ),
            make_message(
                "a3", subject="Lunch", snippet="See you there", sender="bob@example.com",
                date=NOW - 3 * DAY, to=[ME], thread_id="t2",
            ),
            make_message(
                "a4", subject="Re: Lunch", sender="me@corp.com",
                date=NOW - 2 * DAY, to=[Participant("bob@example.com")], thread_id="t2",
            ),
            make_message(
                "a5", subject="Old note", sender="carol@example.com",
                date=NOW - 40 * DAY, to=[ME], thread_id="t5",
            ),
        ]
    )


class NarratingAI(EmailAI):
    async def narrate_insights(self, insight_type, facts, fallback):
        return {"summary": "Busy day.", "highlights": ["Budget review is urgent"], "recommendations": []}


class TestEmailInsights:
    """Tests for each insight type over a fixed clock."""

    @staticmethod
    async def ask(ctx, query: str, **arguments: Any) -> dict[str, Any]:
        return await EmailInsightsTool(clock=lambda: NOW).execute({"query": query, **arguments}, ctx)

    @pytest.mark.asyncio
    async def test_daily_summary(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "summarize today")

        assert result["insight_type"] == "daily_summary"
        assert busy_mailbox.list_calls[0]["received_after"] == NOW - DAY
        assert result["summary"] == (
            "You received 2 emails today (2 unread). 1 are marked as important. "
            "Categories: urgent_alert: 1, notification: 1."
        )
        insights = result["insights"]
        assert insights["total_emails"] == 2
        assert [i["id"] for i in insights["important_emails"]] == ["a1"]
        assert "emails_by_day" not in insights

    @pytest.mark.asyncio
    async def test_weekly_summary(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "summarize my week")

        insights = result["insights"]
        assert result["insight_type"] == "weekly_summary"
        assert insights["total_emails"] == 4
        assert insights["daily_average"] == 1
        assert sum(insights["emails_by_day"].values()) == 4
        assert list(insights["emails_by_day"]) == sorted(insights["emails_by_day"])

    @pytest.mark.asyncio
    async def test_empty_mailbox(self, make_ctx) -> None:
        result = await self.ask(make_ctx(FakeMailbox()), "summarize today")
        assert result == {
            "insight_type": "daily_summary",
            "summary": "No emails received today. Your inbox is clear!",
            "insights": {"total_emails": 0},
        }

    @pytest.mark.asyncio
    async def test_important_items(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "what's important")

        assert busy_mailbox.list_calls[0]["unread"] is True
        assert result["summary"] == "Found 1 important emails that require attention."
        assert result["insights"]["action_items"] == [
            {"task": "Can you send the numbers?", "priority": "medium", "deadline": None, "email_id": "a1"}
        ]

    @pytest.mark.asyncio
    async def test_response_needed(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "who needs a reply")

        pending = result["insights"]["needs_response"]
        # a3 was answered in-thread by a4; a2 is automated
        assert [p["id"] for p in pending] == ["a1", "a5"]
        assert result["summary"] == "2 emails need responses. 1 are high priority."

    @pytest.mark.asyncio
    async def test_analytics_period_argument(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "email stats", time_period="month")

        assert result["insight_type"] == "analytics"
        assert busy_mailbox.list_calls[0]["received_after"] == NOW - 30 * DAY
        assert result["insights"]["top_senders"][0] == {"email": "alice@example.com", "count": 1}
        assert result["summary"] == (
            "Email analytics for the past month: 4 total emails (0.1/day). "
            "Top sender: alice@example.com."
        )

    @pytest.mark.asyncio
    async def test_relationships(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox), "my key contacts")

        insights = result["insights"]
        assert insights["user_email"] == "me@corp.com"
        assert insights["key_relationships"][0] == {"contact": "bob@example.com", "sent": 1, "received": 1}
        assert result["summary"] == (
            "Your most frequent contacts over the past 30 days: bob@example.com (2), "
            "alice@example.com (1), alerts-noreply@service.io (1)."
        )

    @pytest.mark.asyncio
    async def test_relationships_use_caller_address(self, busy_mailbox, make_ctx) -> None:
        ctx = make_ctx(busy_mailbox, user_context={"user_email": "bob@example.com"})
        result = await self.ask(ctx, "my key contacts")

        contacts = {s["contact"]: s for s in result["insights"]["key_relationships"]}
        assert result["insights"]["user_email"] == "bob@example.com"
        assert contacts["me@corp.com"] == {"contact": "me@corp.com", "sent": 1, "received": 1}

    @pytest.mark.asyncio
    async def test_narrative_highlights(self, busy_mailbox, make_ctx) -> None:
        result = await self.ask(make_ctx(busy_mailbox, ai=NarratingAI()), "summarize today")

        assert result["summary"] == "Busy day."
        assert result["insights"]["highlights"] == ["Budget review is urgent"]
        assert "recommendations" not in result["insights"]
