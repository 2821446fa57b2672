"""Bulk mutation execution with staggering and retries."""

from inbox_a2a.batch.executor import (
    BatchExecutor,
    BatchFailure,
    BatchResult,
    BatchSettings,
    execute_batch,
    format_report,
    is_retryable,
)

__all__ = [
    "BatchExecutor",
    "BatchFailure",
    "BatchResult",
    "BatchSettings",
    "execute_batch",
    "format_report",
    "is_retryable",
]
