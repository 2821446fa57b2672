"""Tests for the manage_email tool."""

from typing import Any

import pytest

from inbox_a2a.ai.email_ai import EmailAI, EmailIntent
from inbox_a2a.config.schema import RiskConfig
from inbox_a2a.core.errors import ToolError
from inbox_a2a.mailbox.base import EmailDraft, Participant
from inbox_a2a.tools.builtin.manage_email import ManageEmailTool, assess_email_risks, to_html


class NameOnlyAI(EmailAI):
    """Planner that returns a contact name instead of an address."""

    async def understand_query(self, query: str, sender_email: str | None = None) -> EmailIntent:
        return EmailIntent(intent="send", recipients=["Sarah"], subject="Hello")


def draft_to(*emails: str) -> EmailDraft:
    return EmailDraft(to=[Participant(e) for e in emails], subject="s", body="b")


async def run(ctx, **arguments: Any) -> dict[str, Any]:
    return await ManageEmailTool().execute(arguments, ctx)


class TestSendPreview:
    """Tests for envelopes produced by send, reply and forward."""

    @pytest.mark.asyncio
    async def test_send_uses_literal_address(self, mailbox, make_ctx) -> None:
        result = await run(make_ctx(mailbox), action="send", query="Ask carol@example.com about Q3")

        assert result["needs_approval"] is True
        assert result["action_type"] == "send_email"
        assert result["preview"]["summary"] == "Send email to carol@example.com"
        content = result["action_data"]["email_content"]
        assert content["to"] == [{"email": "carol@example.com"}]
        assert result["action_data"]["original_params"]["action"] == "send"
        assert mailbox.sent == []

    @pytest.mark.asyncio
    async def test_reply_targets_original_sender(self, mailbox, make_ctx) -> None:
        result = await run(
            make_ctx(mailbox), action="reply", query="Thanks, sounds good", context_message_id="m3"
        )

        content = result["action_data"]["email_content"]
        assert content["to"] == [{"email": "bob@example.com"}]
        assert content["subject"] == "Re: Lunch?"
        assert content["reply_to_message_id"] == "m3"
        assert result["preview"]["summary"] == "Reply email to bob@example.com"

    @pytest.mark.asyncio
    async def test_forward_quotes_original(self, mailbox, make_ctx) -> None:
        result = await run(
            make_ctx(mailbox), action="forward", query="Forward to carol@example.com",
            context_message_id="m1",
        )

        content = result["action_data"]["email_content"]
        assert content["subject"] == "Fwd: Invoice #42"
        assert content["body"].endswith("--- Original Message ---\nPlease pay")
        assert "reply_to_message_id" not in content

    @pytest.mark.asyncio
    async def test_unknown_context_message_propagates(self, mailbox, make_ctx) -> None:
        from inbox_a2a.core.errors import MailboxError

        with pytest.raises(MailboxError):
            await run(make_ctx(mailbox), action="reply", query="ok", context_message_id="nope")

    @pytest.mark.asyncio
    async def test_contact_name_not_resolved(self, mailbox, make_ctx) -> None:
        result = await run(make_ctx(mailbox, ai=NameOnlyAI()), action="send", query="Email Sarah")

        assert result["success"] is False
        assert result["error"] == "contact_not_found"
        assert "Sarah" in result["message"]
        assert mailbox.sent == []

    @pytest.mark.asyncio
    async def test_no_recipients(self, mailbox, make_ctx) -> None:
        with pytest.raises(ToolError, match="No recipients"):
            await run(make_ctx(mailbox), action="send", query="say hello")


class TestDraftAndCommit:
    """Tests for immediate drafts and approved sends."""

    @pytest.mark.asyncio
    async def test_draft_created_without_approval(self, mailbox, make_ctx) -> None:
        result = await run(
            make_ctx(mailbox), action="draft", query="Note to dave@example.com about Friday"
        )

        assert result == {"success": True, "draft_id": "draft-1", "message": "Draft created successfully"}
        draft = mailbox.drafts[0]
        assert draft.to[0].email == "dave@example.com"
        assert "<br>" in draft.body

    @pytest.mark.asyncio
    async def test_approved_send_uses_payload_as_is(self, mailbox, make_ctx) -> None:
        ctx = make_ctx(mailbox)
        preview = await run(ctx, action="send", query="Ask carol@example.com about Q3")
        preview["action_data"]["email_content"]["subject"] = "Edited subject"

        result = await run(
            ctx, action="send", query="ignored", approved=True, action_data=preview["action_data"]
        )

        assert result["success"] is True
        assert result["approval_executed"] is True
        assert mailbox.sent[0].subject == "Edited subject"


class TestRisks:
    """Tests for send preview risk strings."""

    def test_recipient_threshold(self) -> None:
        emails = [f"u{i}@example.com" for i in range(6)]
        risks = assess_email_risks(draft_to(*emails), "send", RiskConfig())
        assert "Sending to 6 recipients" in risks

    def test_external_recipients(self) -> None:
        risk = RiskConfig(internal_email_domain="Example.com")
        assert assess_email_risks(draft_to("a@example.com"), "send", risk) == []
        assert assess_email_risks(draft_to("a@other.org"), "send", risk) == [
            "Contains external recipients"
        ]

    def test_reply_all(self) -> None:
        risks = assess_email_risks(draft_to("a@x.io", "b@x.io", "c@x.io"), "reply", RiskConfig())
        assert risks == ["Reply-all to multiple recipients"]

    def test_to_html(self) -> None:
        assert to_html("a\n\nb\nc") == "a<br><br>b<br>c"
