"""Mailbox collaborator interface and value types.

Tools talk to the mailbox only through :class:`MailboxClient`. Every method may
raise :class:`~inbox_a2a.core.errors.MailboxError`, whose ``kind`` tells the
batch executor whether a retry is worthwhile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class Participant:
    """An email address with optional display name."""

    email: str
    name: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"email": self.email}
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant:
        return cls(email=data.get("email", ""), name=data.get("name") or None)


@dataclass
class Message:
    """A message as seen by tools.

    Attributes:
        id: Provider message id.
        subject: Subject line (may be empty).
        sender: First ``from`` participant, if any.
        to: Primary recipients.
        cc: Carbon-copy recipients.
        date: Unix timestamp of the message.
        unread: Unread flag.
        starred: Starred flag.
        folders: Ids of the folders the message is filed in.
        snippet: Short plain-text preview.
        body: Full body (HTML or text), when fetched.
        thread_id: Provider thread id.
    """

    id: str
    subject: str = ""
    sender: Participant | None = None
    to: list[Participant] = field(default_factory=list)
    cc: list[Participant] = field(default_factory=list)
    date: int = 0
    unread: bool = False
    starred: bool = False
    folders: list[str] = field(default_factory=list)
    snippet: str = ""
    body: str = ""
    thread_id: str | None = None

    def summary(self) -> dict[str, Any]:
        """Compact form used in previews."""
        return {
            "id": self.id,
            "subject": self.subject,
            "from": self.sender.email if self.sender else None,
            "date": self.date,
            "unread": self.unread,
            "starred": self.starred,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full form returned by the read-only tools."""
        return {
            **self.summary(),
            "from": [self.sender.to_dict()] if self.sender else [],
            "to": [p.to_dict() for p in self.to],
            "cc": [p.to_dict() for p in self.cc],
            "folders": list(self.folders),
            "snippet": self.snippet,
            "body": self.body,
            "thread_id": self.thread_id,
        }


@dataclass
class Folder:
    """A provider folder (or label).

    Attributes:
        id: Provider folder id.
        name: Display name.
        attributes: Provider system attributes such as ``\\Archive``.
        total_count: Message count when reported by the provider.
    """

    id: str
    name: str
    attributes: list[str] = field(default_factory=list)
    total_count: int | None = None


@dataclass
class EmailDraft:
    """Outgoing email content, fully resolved.

    This is also the ``email_content`` stored in a send_email approval payload,
    so it round-trips through :meth:`to_dict`/:meth:`from_dict`.
    """

    to: list[Participant]
    subject: str
    body: str
    cc: list[Participant] = field(default_factory=list)
    bcc: list[Participant] = field(default_factory=list)
    reply_to_message_id: str | None = None

    @property
    def recipients(self) -> list[Participant]:
        return [*self.to, *self.cc, *self.bcc]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "to": [p.to_dict() for p in self.to],
            "cc": [p.to_dict() for p in self.cc],
            "bcc": [p.to_dict() for p in self.bcc],
            "subject": self.subject,
            "body": self.body,
        }
        if self.reply_to_message_id:
            data["reply_to_message_id"] = self.reply_to_message_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmailDraft:
        return cls(
            to=[Participant.from_dict(p) for p in data.get("to", [])],
            cc=[Participant.from_dict(p) for p in data.get("cc", [])],
            bcc=[Participant.from_dict(p) for p in data.get("bcc", [])],
            subject=data.get("subject", ""),
            body=data.get("body", ""),
            reply_to_message_id=data.get("reply_to_message_id"),
        )


class MailboxClient(Protocol):
    """Operations the tools need from a mailbox provider."""

    async def list_messages(
        self,
        *,
        folder_id: str | None = None,
        limit: int = 50,
        unread: bool | None = None,
        search: str | None = None,
        starred: bool | None = None,
        received_after: int | None = None,
    ) -> list[Message]: ...

    async def find_message(self, message_id: str) -> Message: ...

    async def update_message(
        self,
        message_id: str,
        *,
        unread: bool | None = None,
        starred: bool | None = None,
        folders: list[str] | None = None,
    ) -> None: ...

    async def destroy_message(self, message_id: str) -> None: ...

    async def send_message(self, draft: EmailDraft) -> str: ...

    async def create_draft(self, draft: EmailDraft) -> str: ...

    async def list_folders(self) -> list[Folder]: ...

    async def create_folder(self, name: str) -> Folder: ...

    async def aclose(self) -> None: ...
