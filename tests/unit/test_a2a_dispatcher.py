"""Tests for the A2A method handlers."""

import json
from typing import Any

import pytest
from fakes import FakeMailbox, no_sleep

from inbox_a2a.batch.executor import BatchExecutor
from inbox_a2a.config.schema import Config
from inbox_a2a.rpc.dispatcher import A2ADispatcher
from inbox_a2a.rpc.types import AgentIdentity
from inbox_a2a.tools.builtin.registration import create_default_registry

CREDS = {"credentials": {"EMAIL_ACCOUNT_GRANT": "grant-123"}}
SEND_ARGS = {"action": "send", "query": "Tell bob@example.com the report is ready"}
APPROVAL_TOOLS = [
    "manage_email",
    "organize_inbox",
    "smart_folders",
    "triage_update_emails",
    "batch_archive_emails",
]


class MailboxFactory:
    """Hands out one shared FakeMailbox and records the credentials used."""

    def __init__(self, mailbox: FakeMailbox) -> None:
        self.mailbox = mailbox
        self.calls: list[tuple[str, str]] = []

    def __call__(self, api_key: str, grant_id: str) -> FakeMailbox:
        self.calls.append((api_key, grant_id))
        return self.mailbox


def make_dispatcher(mailbox: FakeMailbox, **kwargs: Any) -> tuple[A2ADispatcher, MailboxFactory]:
    factory = MailboxFactory(mailbox)
    dispatcher = A2ADispatcher(
        create_default_registry(),
        Config(),
        mailbox_factory=factory,
        mailbox_api_key=kwargs.pop("mailbox_api_key", "server-key"),
        batch=BatchExecutor(sleep=no_sleep),
        **kwargs,
    )
    return dispatcher, factory


async def call(dispatcher: A2ADispatcher, method: str, params: Any = None, request_id: Any = 1) -> dict[str, Any]:
    body: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        body["params"] = params
    reply = await dispatcher.handle_body(
        json.dumps(body), AgentIdentity(sub="agent-7", email="a7@example.com")
    )
    assert reply.status == 200
    return json.loads(reply.body)


class TestCardAndHandshake:
    """Tests for agent.card and agent.handshake."""

    @pytest.mark.asyncio
    async def test_card(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        card = (await call(dispatcher, "agent.card"))["result"]

        assert card["agent_id"] == "inbox-a2a"
        assert card["approvals"] == {"modes": ["stateless_preview_then_approve"]}
        assert card["context_requirements"] == {"credentials": ["EMAIL_ACCOUNT_GRANT"]}
        assert card["rpc"] == {"endpoint": "/a2a/rpc"}
        names = {c["name"] for c in card["capabilities"]}
        assert names == {
            "manage_email",
            "organize_inbox",
            "smart_folders",
            "triage_update_emails",
            "batch_archive_emails",
            "find_emails",
            "email_insights",
        }
        assert all("input_schema" in c for c in card["capabilities"])

    @pytest.mark.asyncio
    async def test_card_advertises_shared_secret_when_enabled(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox, shared_secret_enabled=True)
        card = (await call(dispatcher, "agent.card"))["result"]
        types = [s["type"] for s in card["auth"]["schemes"]]
        assert types == ["oidc", "shared_secret"]

    @pytest.mark.asyncio
    async def test_handshake(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        result = (await call(dispatcher, "agent.handshake"))["result"]

        assert result["agent"] == {"sub": "agent-7", "email": "a7@example.com"}
        assert result["card"]["agent_id"] == "inbox-a2a"
        assert isinstance(result["server_time"], str)


class TestCredentials:
    """Tests for the credential requirement on tool methods."""

    @pytest.mark.asyncio
    async def test_missing_grant(self, mailbox: FakeMailbox) -> None:
        dispatcher, factory = make_dispatcher(mailbox)
        response = await call(dispatcher, "tool.execute", {"tool": "manage_email", "arguments": SEND_ARGS})

        assert response["error"] == {
            "code": 401,
            "message": "missing_credentials",
            "data": {"hint": "/.well-known/a2a-credentials.json"},
        }
        assert factory.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["tool.execute", "tool.approve"])
    @pytest.mark.parametrize("tool", APPROVAL_TOOLS)
    @pytest.mark.parametrize(
        "user_context",
        [None, {"credentials": {}}, {"credentials": {"EMAIL_ACCOUNT_GRANT": "  "}}],
        ids=["absent", "empty", "blank"],
    )
    async def test_mutating_tools_require_grant(
        self, mailbox: FakeMailbox, method: str, tool: str, user_context: Any
    ) -> None:
        dispatcher, factory = make_dispatcher(mailbox)
        params: dict[str, Any] = {"tool": tool, "arguments": {}}
        if method == "tool.approve":
            params = {"tool": tool, "original_arguments": {}, "action_data": {"message_ids": ["m1"]}}
        if user_context is not None:
            params["user_context"] = user_context

        response = await call(dispatcher, method, params)

        assert response["error"] == {
            "code": 401,
            "message": "missing_credentials",
            "data": {"hint": "/.well-known/a2a-credentials.json"},
        }
        assert factory.calls == []
        assert mailbox.updates == [] and mailbox.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tool", APPROVAL_TOOLS)
    async def test_approve_requires_server_api_key(
        self, mailbox: FakeMailbox, monkeypatch: pytest.MonkeyPatch, tool: str
    ) -> None:
        monkeypatch.delenv("NYLAS_API_KEY", raising=False)
        dispatcher, factory = make_dispatcher(mailbox, mailbox_api_key=None)
        response = await call(
            dispatcher, "tool.approve",
            {"tool": tool, "action_data": {"message_ids": ["m1"]}, "user_context": CREDS},
        )
        assert response["error"]["code"] == 401
        assert response["error"]["message"] == "missing_credentials"
        assert factory.calls == []

    @pytest.mark.asyncio
    async def test_missing_server_api_key(self, mailbox: FakeMailbox, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NYLAS_API_KEY", raising=False)
        dispatcher, _ = make_dispatcher(mailbox, mailbox_api_key=None)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert response["error"]["message"] == "missing_credentials"

    @pytest.mark.asyncio
    async def test_api_key_from_environment(self, mailbox: FakeMailbox, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NYLAS_API_KEY", "env-key")
        dispatcher, factory = make_dispatcher(mailbox, mailbox_api_key=None)
        await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert factory.calls == [("env-key", "grant-123")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("alias", ["EMAIL_ACCOUNT_GRANT", "NYLAS_GRANT_ID", "nylas_grant_id", "grant_id"])
    async def test_grant_aliases(self, mailbox: FakeMailbox, alias: str) -> None:
        dispatcher, factory = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": {"credentials": {alias: "g-1"}}},
        )
        assert "result" in response
        assert factory.calls == [("server-key", "g-1")]

    @pytest.mark.asyncio
    async def test_credentials_checked_before_tool_lookup(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(dispatcher, "tool.execute", {"tool": "nope"})
        assert response["error"]["code"] == 401


class TestToolExecute:
    """Tests for tool.execute."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(dispatcher, "tool.execute", {"tool": "calendar_events", "user_context": CREDS})
        assert response["error"] == {"code": 404, "message": "unknown_tool", "data": {"tool": "calendar_events"}}

    @pytest.mark.asyncio
    async def test_read_only_tool(self, mailbox: FakeMailbox) -> None:
        dispatcher, factory = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "find_emails", "arguments": {"query": "unread emails"}, "user_context": CREDS},
        )

        result = response["result"]["result"]
        assert result["total_count"] == 1
        assert result["emails"][0]["id"] == "m1"
        assert factory.calls == [("server-key", "grant-123")]
        assert mailbox.closed is True

    @pytest.mark.asyncio
    async def test_read_only_tool_requires_grant(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute", {"tool": "email_insights", "arguments": {"query": "my week"}}
        )
        assert response["error"]["message"] == "missing_credentials"

    @pytest.mark.asyncio
    async def test_send_returns_envelope(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS, "request_id": "req-1"},
        )
        result = response["result"]
        assert result["request_id"] == "req-1"
        envelope = result["result"]
        assert envelope["needs_approval"] is True
        assert envelope["action_type"] == "send_email"
        assert envelope["preview"]["summary"] == "Send email to bob@example.com"
        assert envelope["action_data"]["email_content"]["to"] == [{"email": "bob@example.com"}]
        assert mailbox.sent == []

    @pytest.mark.asyncio
    async def test_generated_request_id(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert isinstance(response["result"]["request_id"], str)
        assert response["result"]["request_id"]

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": {"action": "shout"}, "user_context": CREDS},
        )
        assert response["error"]["code"] == -32602
        assert response["error"]["message"] == "Invalid params"

    @pytest.mark.asyncio
    async def test_non_object_arguments(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": ["send"], "user_context": CREDS},
        )
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_opt_out_sends_immediately(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.execute",
            {
                "tool": "manage_email",
                "arguments": {**SEND_ARGS, "require_approval": False},
                "user_context": CREDS,
            },
        )
        result = response["result"]["result"]
        assert result["success"] is True
        assert result["message_id"] == "sent-1"
        assert result["approval_executed"] is False
        assert len(mailbox.sent) == 1

    @pytest.mark.asyncio
    async def test_mailbox_closed_after_call(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert mailbox.closed is True

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_masked(self, mailbox: FakeMailbox) -> None:
        def broken_factory(api_key: str, grant_id: str) -> FakeMailbox:
            raise RuntimeError("connection pool exploded at 10.0.0.5")

        dispatcher = A2ADispatcher(
            create_default_registry(), Config(),
            mailbox_factory=broken_factory, mailbox_api_key="k",
        )
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert response["error"] == {"code": -32603, "message": "Internal error"}


class TestToolApprove:
    """Tests for tool.approve."""

    async def _preview(self, dispatcher: A2ADispatcher) -> dict[str, Any]:
        response = await call(
            dispatcher, "tool.execute",
            {"tool": "manage_email", "arguments": SEND_ARGS, "user_context": CREDS},
        )
        return response["result"]["result"]

    @pytest.mark.asyncio
    async def test_approve_sends(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        envelope = await self._preview(dispatcher)

        response = await call(
            dispatcher, "tool.approve",
            {
                "tool": "manage_email",
                "original_arguments": SEND_ARGS,
                "action_data": envelope["action_data"],
                "user_context": CREDS,
                "request_id": "approve-1",
            },
        )
        result = response["result"]
        assert result["request_id"] == "approve-1"
        assert result["result"]["success"] is True
        assert result["result"]["approval_executed"] is True
        assert [p.email for p in mailbox.sent[0].to] == ["bob@example.com"]

    @pytest.mark.asyncio
    async def test_replayed_approval_sends_twice(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        envelope = await self._preview(dispatcher)
        params = {
            "tool": "manage_email",
            "original_arguments": SEND_ARGS,
            "action_data": envelope["action_data"],
            "user_context": CREDS,
        }

        first = await call(dispatcher, "tool.approve", params, request_id=1)
        second = await call(dispatcher, "tool.approve", params, request_id=2)

        first_id = first["result"]["result"]["message_id"]
        second_id = second["result"]["result"]["message_id"]
        assert first_id != second_id
        assert len(mailbox.sent) == 2

    @pytest.mark.asyncio
    async def test_tool_outside_allow_list(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.approve",
            {"tool": "find_emails", "action_data": {"x": 1}, "user_context": CREDS},
        )
        assert response["error"] == {
            "code": 400,
            "message": "approval_not_supported_for_tool",
            "data": {"tool": "find_emails"},
        }

    @pytest.mark.asyncio
    async def test_missing_action_data(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.approve",
            {"tool": "manage_email", "original_arguments": SEND_ARGS, "user_context": CREDS},
        )
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_malformed_action_data(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        response = await call(
            dispatcher, "tool.approve",
            {
                "tool": "manage_email",
                "original_arguments": SEND_ARGS,
                "action_data": {"email_content": {"to": [], "subject": "x", "body": "y"}},
                "user_context": CREDS,
            },
        )
        assert response["error"]["code"] == -32602
        assert "action_data" in response["error"]["data"]
        assert mailbox.sent == []

    @pytest.mark.asyncio
    async def test_approve_bulk_archive(self, mailbox: FakeMailbox) -> None:
        dispatcher, _ = make_dispatcher(mailbox)
        args = {"message_ids": ["m1", "m2", "missing"]}
        preview = await call(
            dispatcher, "tool.execute",
            {"tool": "batch_archive_emails", "arguments": args, "user_context": CREDS},
        )
        envelope = preview["result"]["result"]
        assert envelope["action_type"] == "archive_messages"

        response = await call(
            dispatcher, "tool.approve",
            {
                "tool": "batch_archive_emails",
                "original_arguments": args,
                "action_data": envelope["action_data"],
                "user_context": CREDS,
            },
        )
        result = response["result"]["result"]
        assert result["succeeded"] == 2
        assert result["failed"] == 1
        assert result["report"].startswith("Archive complete. 2/3 succeeded. Failed: 1.")
        assert mailbox.messages["m1"].folders == ["archive"]
