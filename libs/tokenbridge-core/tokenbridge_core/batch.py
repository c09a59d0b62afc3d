"""Bounded-concurrency batch executor with per-item failure isolation.

Items run in chunks of at most `batch_size`; each chunk is awaited as a
whole before the next one starts (optionally after `delay` seconds).
A failing item is recorded as `BatchFailure(index, error, item)` and never
aborts its siblings or later chunks. Successes come back in input order.

Example:
    executor = BatchExecutor(batch_size=10, delay=0.1)
    result = await executor.process_batch(paths, fetch_one)
    print(result.success_count, result.failure_count)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from tokenbridge_core.errors import BatchItemError

logger = logging.getLogger(__name__)

TIn = TypeVar("TIn")
TOut = TypeVar("TOut")

ItemProcessor = Callable[[TIn, int], Awaitable[TOut]]


@dataclass
class BatchFailure:
    index: int
    error: Exception
    item: Any = None


@dataclass
class BatchResult(Generic[TOut]):
    successes: list[TOut] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    total: int = 0
    # index -> number of attempts made (only filled by the retrying variant)
    attempts: dict[int, int] = field(default_factory=dict)
    # index -> value, for callers that need to map results back to inputs
    by_index: dict[int, TOut] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


async def _call(processor: ItemProcessor, item: Any, index: int) -> Any:
    # a processor that raises before returning an awaitable still fails only its item
    return await processor(item, index)


def normalize_error(value: BaseException) -> Exception:
    """Errors as Exception instances; anything else is wrapped with its string form."""
    if isinstance(value, Exception):
        return value
    return BatchItemError(str(value) or type(value).__name__)


class BatchExecutor:
    def __init__(
        self,
        batch_size: int = 10,
        delay: float = 0.1,
        on_progress: Callable[[int, int], None] | None = None,
        on_error: Callable[[Exception, Any, int], None] | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.delay = delay
        self.on_progress = on_progress
        self.on_error = on_error

    async def process_batch(
        self,
        items: Sequence[TIn],
        processor: ItemProcessor,
        *,
        indices: Sequence[int] | None = None,
    ) -> BatchResult[TOut]:
        """Run `processor(item, index)` over `items` in bounded chunks.

        `indices` lets a caller keep the original input positions when it
        re-submits a subset (used by the retry wrapper).
        """
        positions = list(indices) if indices is not None else list(range(len(items)))
        by_index: dict[int, TOut] = {}
        failures: list[BatchFailure] = []
        completed = 0

        for start in range(0, len(items), self.batch_size):
            chunk = items[start : start + self.batch_size]
            chunk_pos = positions[start : start + self.batch_size]

            outcomes = await asyncio.gather(
                *(_call(processor, item, pos) for item, pos in zip(chunk, chunk_pos)),
                return_exceptions=True,
            )

            for item, pos, outcome in zip(chunk, chunk_pos, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, (KeyboardInterrupt, SystemExit)):
                        raise outcome
                    error = normalize_error(outcome)
                    failures.append(BatchFailure(index=pos, error=error, item=item))
                    if self.on_error:
                        self.on_error(error, item, pos)
                    else:
                        logger.warning(f"Item {pos} failed: {error}")
                else:
                    by_index[pos] = outcome
                completed += 1

            if self.on_progress:
                self.on_progress(completed, len(items))

            if start + self.batch_size < len(items) and self.delay > 0:
                await asyncio.sleep(self.delay)

        return BatchResult(
            successes=[by_index[i] for i in sorted(by_index)],
            failures=sorted(failures, key=lambda f: f.index),
            total=len(items),
            by_index=by_index,
        )

    async def process_batch_with_retry(
        self,
        items: Sequence[TIn],
        processor: ItemProcessor,
        max_retries: int = 2,
        base_delay: float = 1.0,
    ) -> BatchResult[TOut]:
        """
        Like `process_batch`, then re-submit only the failed items.

        Retry round `n` (0-based) waits ``2**n * base_delay`` seconds first.
        Items still failing after `max_retries` rounds are reported as
        permanent failures; `attempts` records how many times each item ran.
        """
        first = await self.process_batch(items, processor)
        by_index = dict(first.by_index)
        attempts = {i: 1 for i in range(len(items))}
        failures = first.failures

        for attempt in range(max_retries):
            if not failures:
                break
            backoff = (2**attempt) * base_delay
            logger.info(
                f"Retrying {len(failures)} failed item(s) in {backoff:.1f}s "
                f"(round {attempt + 1}/{max_retries})"
            )
            if backoff > 0:
                await asyncio.sleep(backoff)

            retry_items = [items[f.index] for f in failures]
            retry_pos = [f.index for f in failures]
            for pos in retry_pos:
                attempts[pos] += 1
            again = await self.process_batch(retry_items, processor, indices=retry_pos)
            by_index.update(again.by_index)
            failures = again.failures

        for f in failures:
            logger.error(f"Item {f.index} failed permanently after {attempts[f.index]} attempt(s): {f.error}")

        return BatchResult(
            successes=[by_index[i] for i in sorted(by_index)],
            failures=failures,
            total=len(items),
            attempts=attempts,
            by_index=by_index,
        )
