"""
Unit Tests for TaskQueue

Tests ordering, retry priority, backoff timing and dead-lettering of the
serializing task queue.
"""

import asyncio

import pytest

from feedgate.core.events import EventChannel, GatewayEventType
from feedgate.core.exceptions import GivenUpError, TransientTransportError
from feedgate.core.resilience.task_queue import QueueConfig, SchedulingPolicy, TaskQueue


def _queue(sleep, rng, **overrides) -> TaskQueue:
    return TaskQueue(QueueConfig(**overrides), sleep=sleep, rng=rng)


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.unit
class TestTaskQueueOrdering:
    """Test suite for TaskQueue ordering."""

    @pytest.mark.asyncio
    async def test_tasks_run_in_fifo_order(self, recording_sleep, seeded_rng):
        """Test that successful tasks complete in enqueue order."""
        queue = _queue(recording_sleep, seeded_rng)
        ran = []

        def op(label):
            async def run():
                ran.append(label)
                return label
            return run

        results = await asyncio.gather(*(queue.enqueue(op(i)) for i in range(1, 5)))

        assert results == [1, 2, 3, 4]
        assert ran == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_failed_task_retried_before_later_tasks(self, recording_sleep, seeded_rng):
        """Test that a failed task is retried ahead of the tasks queued after it."""
        queue = _queue(recording_sleep, seeded_rng)
        gate = asyncio.Event()
        attempts = []
        completed = []
        failures = {2: 1}

        def op(label):
            async def run():
                attempts.append(label)
                if label == 1:
                    await gate.wait()
                if failures.get(label):
                    failures[label] -= 1
                    raise TransientTransportError(f"task {label} failed")
                completed.append(label)
                return label
            return run

        callers = [asyncio.create_task(queue.enqueue(op(i), name=f"task-{i}")) for i in (1, 2, 3)]
        await _settle()
        # Task 1 is executing; 2 and 3 are waiting
        assert len(queue) == 2

        gate.set()
        results = await asyncio.gather(*callers)

        assert results == [1, 2, 3]
        assert completed == [1, 2, 3]
        assert attempts == [1, 2, 2, 3]

        jitter_max = queue.config.jitter_max_seconds
        assert recording_sleep.delays[1] == 4.0
        assert recording_sleep.delays[1] > jitter_max

        jitters = [d for i, d in enumerate(recording_sleep.delays) if i != 1]
        assert len(jitters) == 3
        assert all(queue.config.jitter_min_seconds <= d <= jitter_max for d in jitters)

    @pytest.mark.asyncio
    async def test_fair_rotate_moves_failed_task_to_tail(self, recording_sleep, seeded_rng):
        """Test that FAIR_ROTATE lets later tasks run before the retry."""
        queue = _queue(recording_sleep, seeded_rng, policy=SchedulingPolicy.FAIR_ROTATE)
        attempts = []
        failures = {"a": 1}

        def op(label):
            async def run():
                attempts.append(label)
                if failures.get(label):
                    failures[label] -= 1
                    raise TransientTransportError("try again")
                return label
            return run

        results = await asyncio.gather(queue.enqueue(op("a")), queue.enqueue(op("b")))

        assert results == ["a", "b"]
        assert attempts == ["a", "b", "a"]

    @pytest.mark.asyncio
    async def test_abandoned_task_is_skipped(self, recording_sleep, seeded_rng):
        """Test that a task whose caller was cancelled never runs."""
        queue = _queue(recording_sleep, seeded_rng)
        gate = asyncio.Event()
        ran = []

        async def first():
            await gate.wait()
            ran.append("first")

        async def second():
            ran.append("second")

        first_caller = asyncio.create_task(queue.enqueue(first))
        second_caller = asyncio.create_task(queue.enqueue(second))
        await _settle()

        second_caller.cancel()
        gate.set()
        await first_caller
        await queue.join()

        assert ran == ["first"]
        assert second_caller.cancelled()


@pytest.mark.unit
class TestTaskQueueBackoff:
    """Test suite for TaskQueue backoff computation."""

    @pytest.mark.parametrize(
        "queue_length,failures,expected",
        [
            (2, 1, 4.0),
            (2, 2, 8.0),
            (1, 1, 2.0),
            (1, 2, 4.0),
            (0, 0, 1.0),
        ],
    )
    def test_backoff_delay_formula(self, queue_length, failures, expected):
        """Test that backoff doubles with queue length and failure streak."""
        queue = TaskQueue(QueueConfig())
        assert queue.backoff_delay(queue_length, failures) == expected

    def test_backoff_delay_is_capped(self):
        """Test that backoff never exceeds the configured maximum."""
        queue = TaskQueue(QueueConfig(backoff_max_seconds=30.0))
        assert queue.backoff_delay(50, 50) == 30.0
        assert queue.backoff_delay(10_000, 10_000) == 30.0

    def test_jitter_stays_in_window(self, seeded_rng):
        """Test that jitter delays fall inside the configured window."""
        queue = TaskQueue(QueueConfig(), rng=seeded_rng)
        delays = [queue.jitter_delay() for _ in range(200)]
        assert all(1.5 <= d <= 3.5 for d in delays)

    @pytest.mark.asyncio
    async def test_backoff_grows_with_consecutive_failures(self, recording_sleep, seeded_rng):
        """Test that repeated failures of one task double the pause each time."""
        queue = _queue(recording_sleep, seeded_rng, max_attempts=None)
        failures = [TransientTransportError("one"), TransientTransportError("two")]

        async def flaky():
            if failures:
                raise failures.pop(0)
            return "ok"

        assert await queue.enqueue(flaky) == "ok"
        assert recording_sleep.delays[:2] == [2.0, 4.0]
        assert queue.stats()["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_retry_event_published(self, recording_sleep, seeded_rng):
        """Test that each retry publishes TASK_RETRYING with its delay."""
        events = EventChannel()
        subscriber = events.subscribe()
        queue = TaskQueue(QueueConfig(), sleep=recording_sleep, rng=seeded_rng, events=events)
        failures = [TransientTransportError("once")]

        async def flaky():
            if failures:
                raise failures.pop(0)
            return "ok"

        await queue.enqueue(flaky, name="flaky")

        event = subscriber.get_nowait()
        assert event.type == GatewayEventType.TASK_RETRYING
        assert event.payload["name"] == "flaky"
        assert event.payload["retry_count"] == 1
        assert event.payload["delay_seconds"] == 2.0


@pytest.mark.unit
class TestTaskQueueDeadLetter:
    """Test suite for TaskQueue retry ceiling."""

    @pytest.mark.asyncio
    async def test_task_given_up_after_max_attempts(self, recording_sleep, seeded_rng):
        """Test that a task failing max_attempts times rejects with GivenUpError."""
        events = EventChannel()
        subscriber = events.subscribe()
        queue = TaskQueue(
            QueueConfig(max_attempts=3), sleep=recording_sleep, rng=seeded_rng, events=events
        )
        calls = 0

        async def always_fails():
            nonlocal calls
            calls += 1
            raise TransientTransportError("still down")

        with pytest.raises(GivenUpError) as exc_info:
            await queue.enqueue(always_fails, name="doomed")

        assert calls == 3
        assert isinstance(exc_info.value.__cause__, TransientTransportError)
        assert exc_info.value.details["attempts"] == 3
        assert exc_info.value.details["last_error_type"] == "TransientTransportError"

        letters = queue.dead_letters
        assert len(letters) == 1
        assert letters[0].name == "doomed"
        assert letters[0].attempts == 3

        types = []
        while not subscriber.empty():
            types.append(subscriber.get_nowait().type)
        assert types == [
            GatewayEventType.TASK_RETRYING,
            GatewayEventType.TASK_RETRYING,
            GatewayEventType.TASK_DEAD_LETTERED,
        ]

    @pytest.mark.asyncio
    async def test_queue_continues_after_dead_letter(self, recording_sleep, seeded_rng):
        """Test that later tasks still run once a task is dead-lettered."""
        queue = _queue(recording_sleep, seeded_rng, max_attempts=2)

        async def always_fails():
            raise TransientTransportError("down")

        async def works():
            return "done"

        results = await asyncio.gather(
            queue.enqueue(always_fails),
            queue.enqueue(works),
            return_exceptions=True,
        )

        assert isinstance(results[0], GivenUpError)
        assert results[1] == "done"
        assert queue.stats()["dead_lettered"] == 1

    @pytest.mark.asyncio
    async def test_dead_letter_history_is_bounded(self, recording_sleep, seeded_rng):
        """Test that only the most recent dead letters are retained."""
        queue = _queue(recording_sleep, seeded_rng, max_attempts=1, dead_letter_limit=2)

        async def always_fails():
            raise TransientTransportError("down")

        for name in ("a", "b", "c"):
            with pytest.raises(GivenUpError):
                await queue.enqueue(always_fails, name=name)

        assert [letter.name for letter in queue.dead_letters] == ["b", "c"]


@pytest.mark.unit
class TestTaskQueueLifecycle:
    """Test suite for TaskQueue worker lifecycle."""

    @pytest.mark.asyncio
    async def test_worker_stops_when_drained(self, recording_sleep, seeded_rng):
        """Test that the worker exits once the queue is empty."""
        queue = _queue(recording_sleep, seeded_rng)

        async def op():
            return 1

        await queue.enqueue(op)
        await queue.join()

        assert not queue.is_running
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_cancelled_operation_does_not_stop_worker(self, recording_sleep, seeded_rng):
        """Test that an operation raising CancelledError is rejected and the queue keeps draining."""
        queue = _queue(recording_sleep, seeded_rng)

        async def cancelled():
            raise asyncio.CancelledError()

        async def works():
            return "done"

        results = await asyncio.gather(
            queue.enqueue(cancelled, name="cancelled"),
            queue.enqueue(works),
            return_exceptions=True,
        )
        await asyncio.wait_for(queue.join(), timeout=1)

        assert isinstance(results[0], GivenUpError)
        assert isinstance(results[0].__cause__, asyncio.CancelledError)
        assert results[1] == "done"
        assert queue.dead_letters[0].attempts == 1
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_cancelling_worker_releases_waiting_callers(self, recording_sleep, seeded_rng):
        """Test that stopping the worker cancels every waiting caller and leaves the queue idle."""
        queue = _queue(recording_sleep, seeded_rng)
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        callers = [asyncio.create_task(queue.enqueue(blocked)) for _ in range(2)]
        await _settle()
        queue._worker.cancel()
        await _settle()

        for caller in callers:
            with pytest.raises(asyncio.CancelledError):
                await caller
        await asyncio.wait_for(queue.join(), timeout=1)
        assert len(queue) == 0
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_worker_restarts_for_new_work(self, recording_sleep, seeded_rng):
        """Test that enqueueing after a drain starts a fresh worker."""
        queue = _queue(recording_sleep, seeded_rng)

        async def op():
            return "again"

        await queue.enqueue(op)
        await queue.join()
        assert await queue.enqueue(op) == "again"

    @pytest.mark.asyncio
    async def test_stats_report_counters(self, recording_sleep, seeded_rng):
        """Test that stats reflect completed and retried tasks."""
        queue = _queue(recording_sleep, seeded_rng)
        failures = [TransientTransportError("once")]

        async def flaky():
            if failures:
                raise failures.pop(0)
            return True

        await asyncio.gather(queue.enqueue(flaky), queue.enqueue(flaky))
        await queue.join()
        stats = queue.stats()

        assert stats["completed"] == 2
        assert stats["retried"] == 1
        assert stats["dead_lettered"] == 0
        assert stats["depth"] == 0
        assert stats["running"] is False
        assert stats["policy"] == "retry_first"

    def test_config_from_settings(self, test_settings):
        """Test that QueueConfig mirrors the queue settings."""
        config = QueueConfig.from_settings(test_settings)

        assert config.jitter_min_seconds == 1.5
        assert config.jitter_max_seconds == 3.5
        assert config.max_attempts == 5
        assert config.policy == SchedulingPolicy.RETRY_FIRST
