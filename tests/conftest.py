"""Shared pytest fixtures: an in-memory mailbox and tool contexts."""

from __future__ import annotations

from typing import Any

import pytest
from fakes import FakeMailbox, make_message, no_sleep

from inbox_a2a.ai.email_ai import EmailAI
from inbox_a2a.batch.executor import BatchExecutor, BatchSettings
from inbox_a2a.config.schema import RiskConfig
from inbox_a2a.mailbox.base import Folder
from inbox_a2a.tools.base import ToolContext


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox(
        messages=[
            make_message("m1", subject="Invoice #42", snippet="Please pay", unread=True),
            make_message("m2", subject="Weekly newsletter", sender="news@letters.io"),
            make_message("m3", subject="Lunch?", snippet="Tomorrow at noon", sender="bob@example.com"),
        ],
        folders=[
            Folder(id="inbox", name="Inbox", attributes=["\\Inbox"]),
            Folder(id="archive", name="Archive", attributes=["\\Archive"]),
            Folder(id="finance", name="Finance"),
        ],
    )


@pytest.fixture
def batch_executor() -> BatchExecutor:
    return BatchExecutor(BatchSettings(), sleep=no_sleep)


@pytest.fixture
def make_ctx(batch_executor: BatchExecutor):
    """Factory building a ToolContext around a mailbox."""

    def _make(mailbox: FakeMailbox, **kwargs: Any) -> ToolContext:
        return ToolContext(
            mailbox=mailbox,
            ai=kwargs.pop("ai", EmailAI()),
            batch=kwargs.pop("batch", batch_executor),
            risk=kwargs.pop("risk", RiskConfig()),
            **kwargs,
        )

    return _make
