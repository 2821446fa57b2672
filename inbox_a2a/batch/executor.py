"""Resilient batch execution over item identifiers.

Items are processed in fixed-size chunks. Chunks run one after another; the
items inside a chunk run concurrently. Each item is staggered by a small random
delay before its first attempt, and failures the error classifier marks as
retryable (429/5xx from the mailbox) are retried with exponential backoff.
Any other failure is recorded after a single attempt.

The executor never raises for an individual item. Every input id ends up in
exactly one of ``successes`` or ``failures``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from inbox_a2a.core.errors import MailboxError

if TYPE_CHECKING:
    from inbox_a2a.config.schema import BatchConfig

logger = logging.getLogger(__name__)

Operation = Callable[[str], Awaitable[object]]
Sleep = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """Return True for mailbox failures classified as rate limiting or server errors."""
    return isinstance(error, MailboxError) and error.retryable


@dataclass(frozen=True)
class BatchSettings:
    """Tuning for one batch run.

    Attributes:
        batch_size: Maximum operations in flight at once.
        jitter_range_ms: (min, max) stagger before an item's first attempt.
        max_retries: Additional attempts allowed for retryable failures.
        base_retry_delay_ms: Retry delay base; attempt n waits base * 2**n.
        retry_jitter_ratio: Fraction of the retry delay applied as +/- jitter.
    """

    batch_size: int = 8
    jitter_range_ms: tuple[int, int] = (25, 75)
    max_retries: int = 3
    base_retry_delay_ms: int = 100
    retry_jitter_ratio: float = 0.2

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        low, high = self.jitter_range_ms
        if low < 0 or low > high:
            raise ValueError(f"Invalid jitter range: {self.jitter_range_ms}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @classmethod
    def from_config(cls, config: BatchConfig) -> BatchSettings:
        return cls(
            batch_size=config.batch_size,
            jitter_range_ms=(config.jitter_min_ms, config.jitter_max_ms),
            max_retries=config.max_retries,
            base_retry_delay_ms=config.base_retry_delay_ms,
            retry_jitter_ratio=config.retry_jitter_ratio,
        )


@dataclass
class BatchFailure:
    """An item that did not succeed.

    Attributes:
        id: The item identifier.
        error: The last error raised by the operation.
        attempts: How many times the operation was called for this item.
    """

    id: str
    error: Exception
    attempts: int

    @property
    def message(self) -> str:
        return getattr(self.error, "message", None) or str(self.error) or type(self.error).__name__


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run."""

    successes: list[str] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    def to_dict(self) -> dict[str, object]:
        return {
            "succeeded": len(self.successes),
            "failed": len(self.failures),
            "total": self.total,
            "successes": list(self.successes),
            "failures": [{"id": f.id, "error": f.message} for f in self.failures],
        }


def format_report(result: BatchResult, headline: str = "") -> str:
    """Render a batch result as a line-item report.

    Example::

        Archived 9/10 succeeded. Failed: 1.

        Details:
        • msg-5 → Message not found
    """
    prefix = f"{headline} " if headline else ""
    text = f"{prefix}{len(result.successes)}/{result.total} succeeded."
    if result.failures:
        details = "\n".join(f"• {f.id} → {f.message}" for f in result.failures)
        text += f" Failed: {len(result.failures)}.\n\nDetails:\n{details}"
    return text


class BatchExecutor:
    """Runs a per-item async operation with bounded concurrency and retries.

    Args:
        settings: Chunking, stagger and retry tuning.
        classify: Predicate deciding whether an error is retryable.
        sleep: Awaitable used for stagger and backoff delays.
        rng: Random source for jitter.
    """

    def __init__(
        self,
        settings: BatchSettings | None = None,
        classify: Callable[[BaseException], bool] = is_retryable,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or BatchSettings()
        self._classify = classify
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def settings(self) -> BatchSettings:
        return self._settings

    def _initial_jitter(self) -> float:
        low, high = self._settings.jitter_range_ms
        return self._rng.uniform(low, high) / 1000.0

    def _retry_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-based), in seconds."""
        delay = self._settings.base_retry_delay_ms * (2 ** attempt)
        ratio = self._settings.retry_jitter_ratio
        delay += delay * self._rng.uniform(-ratio, ratio)
        return max(0.0, delay) / 1000.0

    async def _run_item(
        self, item_id: str, operation: Operation
    ) -> BatchFailure | None:
        await self._sleep(self._initial_jitter())

        max_retries = self._settings.max_retries
        attempt = 0
        while True:
            try:
                await operation(item_id)
                return None
            except Exception as e:
                retryable = self._classify(e)
                if retryable and attempt < max_retries:
                    delay = self._retry_delay(attempt)
                    logger.debug(
                        "Attempt %d failed for %s (%s), retrying in %.0f ms",
                        attempt + 1, item_id, e, delay * 1000,
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                logger.warning(
                    "Final failure for %s after %d attempt(s): %s",
                    item_id, attempt + 1, e,
                )
                return BatchFailure(id=item_id, error=e, attempts=attempt + 1)

    async def execute(
        self, item_ids: Sequence[str], operation: Operation
    ) -> BatchResult:
        """Run ``operation`` once per id and aggregate the outcomes.

        Args:
            item_ids: Identifiers to process, in order.
            operation: Async callable performing the mutation for one id.

        Returns:
            BatchResult with every input id in either successes or failures.
        """
        result = BatchResult()
        size = self._settings.batch_size

        for start in range(0, len(item_ids), size):
            chunk = list(item_ids[start:start + size])
            outcomes = await asyncio.gather(
                *(self._run_item(item_id, operation) for item_id in chunk)
            )
            for item_id, failure in zip(chunk, outcomes):
                if failure is None:
                    result.successes.append(item_id)
                else:
                    result.failures.append(failure)

        logger.info(
            "Batch complete: %d/%d succeeded",
            len(result.successes), result.total,
        )
        return result


async def execute_batch(
    item_ids: Sequence[str],
    operation: Operation,
    settings: BatchSettings | None = None,
) -> BatchResult:
    """Convenience wrapper running a batch with default classification."""
    return await BatchExecutor(settings).execute(item_ids, operation)
