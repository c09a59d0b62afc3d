import asyncio
import random

from tokenbridge_core.batch import BatchExecutor
from tokenbridge_core.errors import BatchItemError

from tests.framework import run


def test_failure_isolation_and_input_order():
    rng = random.Random(7)

    async def work(item: int, index: int) -> int:
        await asyncio.sleep(rng.random() / 100)
        if index == 2:
            raise ValueError("boom")
        return item * 10

    executor = BatchExecutor(batch_size=3, delay=0)
    result = run(executor.process_batch([1, 2, 3, 4, 5], work))

    assert result.success_count == 4
    assert result.failure_count == 1
    assert result.failures[0].index == 2
    assert result.failures[0].item == 3
    assert str(result.failures[0].error) == "boom"
    assert result.successes == [10, 20, 40, 50]
    assert result.total == 5


def test_chunks_never_exceed_batch_size():
    in_flight = 0
    peak = 0

    async def work(item, index):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return item

    run(BatchExecutor(batch_size=4, delay=0).process_batch(list(range(10)), work))
    assert peak == 4


def test_progress_and_error_callbacks():
    progress = []
    errors = []

    async def work(item, index):
        if item == "bad":
            raise RuntimeError("nope")
        return item

    executor = BatchExecutor(
        batch_size=2,
        delay=0,
        on_progress=lambda done, total: progress.append((done, total)),
        on_error=lambda error, item, index: errors.append((item, index)),
    )
    run(executor.process_batch(["a", "bad", "c"], work))
    assert progress == [(2, 3), (3, 3)]
    assert errors == [("bad", 1)]


def test_non_exception_failures_are_normalized():
    class Odd(BaseException):
        def __str__(self):
            return "odd value"

    async def work(item, index):
        raise Odd()

    result = run(BatchExecutor(delay=0).process_batch([1], work))
    assert isinstance(result.failures[0].error, BatchItemError)
    assert str(result.failures[0].error) == "odd value"


def test_empty_input():
    async def work(item, index):
        return item

    result = run(BatchExecutor().process_batch([], work))
    assert result.success_count == 0
    assert result.failure_count == 0


def test_retry_converges_after_two_failures():
    calls: dict[int, int] = {}

    async def flaky(item, index):
        calls[index] = calls.get(index, 0) + 1
        if index == 1 and calls[index] <= 2:
            raise ConnectionError("transient")
        return item

    executor = BatchExecutor(batch_size=10, delay=0)
    result = run(executor.process_batch_with_retry(["a", "b", "c"], flaky, max_retries=2, base_delay=0))

    assert result.success_count == 3
    assert result.failure_count == 0
    assert result.successes == ["a", "b", "c"]
    assert result.attempts[1] == 3
    assert result.attempts[0] == 1


def test_retry_reports_permanent_failures():
    async def always_fails(item, index):
        if index == 0:
            raise ConnectionError("down")
        return item

    executor = BatchExecutor(delay=0)
    result = run(executor.process_batch_with_retry(["x", "y"], always_fails, max_retries=2, base_delay=0))
    assert result.successes == ["y"]
    assert [f.index for f in result.failures] == [0]
    assert result.attempts[0] == 3


def test_retry_backoff_doubles(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("tokenbridge_core.batch.asyncio.sleep", fake_sleep)

    async def always_fails(item, index):
        raise ConnectionError("down")

    executor = BatchExecutor(delay=0)
    run(executor.process_batch_with_retry([1], always_fails, max_retries=3, base_delay=0.5))
    assert sleeps == [0.5, 1.0, 2.0]


def test_processor_raising_before_returning_an_awaitable_fails_only_its_item():
    async def later(item):
        return item

    def work(item, index):
        if index == 1:
            raise RuntimeError("rejected before awaiting")
        return later(item)

    result = run(BatchExecutor(batch_size=3, delay=0).process_batch(["a", "b", "c"], work))
    assert result.successes == ["a", "c"]
    assert [f.index for f in result.failures] == [1]
    assert str(result.failures[0].error) == "rejected before awaiting"
