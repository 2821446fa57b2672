"""Preview-then-approve action protocol."""

from inbox_a2a.approval.envelope import ActionEnvelope, ActionType, Preview, is_envelope
from inbox_a2a.approval.protocol import (
    ApprovalState,
    Plan,
    commit_approved,
    is_approved_execution,
    run_approval_flow,
)

__all__ = [
    "ActionEnvelope",
    "ActionType",
    "ApprovalState",
    "Plan",
    "Preview",
    "commit_approved",
    "is_approved_execution",
    "is_envelope",
    "run_approval_flow",
]
