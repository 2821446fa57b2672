"""Tests for the tool registry, folder index and error classification."""

import pytest

from inbox_a2a.core.errors import ErrorKind, MailboxError
from inbox_a2a.mailbox.base import Folder
from inbox_a2a.mailbox.folders import FolderCache
from inbox_a2a.tools.builtin.manage_email import ManageEmailTool
from inbox_a2a.tools.builtin.registration import create_default_registry
from inbox_a2a.tools.registry import ToolRegistry


class TestToolRegistry:
    """Tests for registration and lookup."""

    def test_default_tools(self) -> None:
        registry = create_default_registry()
        assert registry.names == [
            "manage_email",
            "organize_inbox",
            "smart_folders",
            "triage_update_emails",
            "batch_archive_emails",
            "find_emails",
            "email_insights",
        ]
        assert registry.approval_tools() == registry.names[:5]
        assert len(registry) == 7

    def test_instances_cached(self) -> None:
        registry = create_default_registry()
        assert registry.get("manage_email") is registry.get("manage_email")
        assert registry.get("calendar_events") is None
        assert "calendar_events" not in registry

    def test_capabilities(self) -> None:
        capability = create_default_registry().capabilities()[0]
        assert capability["name"] == "manage_email"
        assert capability["input_schema"]["required"] == ["action", "query"]

    def test_rejects_bad_name(self) -> None:
        with pytest.raises(ValueError, match="Invalid tool name"):
            ToolRegistry().register("Bad-Name", ManageEmailTool, description="", parameters={})

    def test_reregister_replaces_instance(self) -> None:
        registry = ToolRegistry()
        registry.register_tool(ManageEmailTool)
        first = registry.get("manage_email")
        registry.register_tool(ManageEmailTool)
        assert registry.get("manage_email") is not first


class TestFolderCache:
    """Tests for folder lookup within one call."""

    @pytest.mark.asyncio
    async def test_lookup_loads_once(self, mailbox) -> None:
        cache = FolderCache(mailbox)
        assert (await cache.find("FINANCE")).id == "finance"
        assert (await cache.find("inbox")).name == "Inbox"
        assert mailbox.folder_list_calls == 1

    @pytest.mark.asyncio
    async def test_miss_refreshes(self, mailbox) -> None:
        cache = FolderCache(mailbox)
        await cache.folders()
        mailbox.folders.append(Folder(id="late", name="Late"))

        assert (await cache.find("Late")).id == "late"
        assert mailbox.folder_list_calls == 2

    @pytest.mark.asyncio
    async def test_resolve_missing(self, mailbox) -> None:
        with pytest.raises(MailboxError) as exc_info:
            await FolderCache(mailbox).resolve_id("nowhere")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_archive_by_name(self, mailbox) -> None:
        mailbox.folders = [Folder(id="gm", name="[Gmail]/All Mail")]
        assert await FolderCache(mailbox).archive_id() == "gm"

    @pytest.mark.asyncio
    async def test_no_archive(self, mailbox) -> None:
        mailbox.folders = [Folder(id="inbox", name="Inbox")]
        with pytest.raises(MailboxError, match="Archive folder not found"):
            await FolderCache(mailbox).archive_id()


class TestErrorKind:
    """Tests for status classification."""

    @pytest.mark.parametrize(
        "status,kind,retryable",
        [
            (429, ErrorKind.RATE_LIMITED, True),
            (500, ErrorKind.SERVER, True),
            (504, ErrorKind.SERVER, True),
            (403, ErrorKind.AUTH, False),
            (404, ErrorKind.NOT_FOUND, False),
            (409, ErrorKind.CONFLICT, False),
            (422, ErrorKind.CLIENT, False),
        ],
    )
    def test_from_status(self, status: int, kind: ErrorKind, retryable: bool) -> None:
        error = MailboxError.from_status(status, "x")
        assert error.kind is kind
        assert error.retryable is retryable

    def test_structural_kinds_not_retryable(self) -> None:
        assert not ErrorKind.NETWORK.retryable
        assert not ErrorKind.INVALID.retryable
