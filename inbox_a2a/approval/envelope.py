"""The action envelope returned instead of performing a mutation.

An envelope carries everything needed to perform the mutation later:
``action_data`` is opaque to the caller and must be sent back unchanged in a
``tool.approve`` call. Nothing about the envelope is stored server-side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(str, Enum):
    """Kinds of mutation an envelope can describe."""

    SEND_EMAIL = "send_email"
    ORGANIZE_INBOX = "organize_inbox"
    APPLY_SMART_FOLDER = "apply_smart_folder"
    TRIAGE_UPDATE = "triage_update"
    ARCHIVE_MESSAGES = "archive_messages"


@dataclass
class Preview:
    """Human-readable description of a planned mutation.

    Attributes:
        summary: One-line description, e.g. "Send email to a@x.com".
        details: Structured detail shown to the approver.
        risks: Warnings such as "Sending to 8 recipients".
    """

    summary: str
    details: dict[str, Any] = field(default_factory=dict)
    risks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.summary, "details": self.details, "risks": list(self.risks)}


@dataclass
class ActionEnvelope:
    """A mutation awaiting approval.

    Attributes:
        action_type: What kind of mutation this is.
        action_data: Self-sufficient payload for the commit step.
        preview: What the approver sees.
    """

    action_type: ActionType
    action_data: dict[str, Any]
    preview: Preview

    def to_dict(self) -> dict[str, Any]:
        return {
            "needs_approval": True,
            "action_type": self.action_type.value,
            "action_data": self.action_data,
            "preview": self.preview.to_dict(),
        }


def is_envelope(result: Any) -> bool:
    """Return True if a tool result is a serialized envelope."""
    return isinstance(result, dict) and result.get("needs_approval") is True
