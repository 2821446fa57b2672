"""Mailbox collaborator: interface, Nylas adapter and folder lookup."""

from inbox_a2a.mailbox.base import EmailDraft, Folder, MailboxClient, Message, Participant
from inbox_a2a.mailbox.folders import FolderCache
from inbox_a2a.mailbox.nylas import NylasMailbox

__all__ = [
    "EmailDraft",
    "Folder",
    "FolderCache",
    "MailboxClient",
    "Message",
    "NylasMailbox",
    "Participant",
]
