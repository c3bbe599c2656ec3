"""
Task Queue - Serialized Remote Operations with Retry and Backoff

Funnels mutating or order-sensitive remote calls into one logical stream.

Architecture:
    TaskQueue (Public API)
        ├── QueueConfig (Jitter window, backoff curve, retry ceiling)
        ├── QueuedTask (Operation, retry counter, tagged state, caller future)
        └── DeadLetter (Terminal record of a task that was given up on)

Flow:
    1. enqueue() appends a QueuedTask and starts the worker if idle
    2. The worker pops the head task and awaits its operation
    3. Success: fulfil the caller, reset the failure streak, sleep a jitter
    4. Failure: bump the retry counter, then either
       - dead-letter it (retry ceiling reached) and reject with GivenUpError
       - reinsert it per SchedulingPolicy and sleep the backoff delay
       An operation that raises CancelledError is dead-lettered without retry
    5. The worker exits when the queue is empty

Backoff:
    delay = min(base * 2^(queue_length + consecutive_failures - 1), max)

    queue_length is the depth right after reinsertion, so a first failure
    with two tasks queued waits 4s with the default 1s base.
"""

import asyncio
import random
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from feedgate.core.config.constants import Stage
from feedgate.core.config.settings import Settings, get_settings
from feedgate.core.events import EventChannel, GatewayEventType
from feedgate.core.exceptions import GivenUpError
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.infrastructure.monitoring.metrics_collector import MetricsCollector

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Any]]
SleepFunc = Callable[[float], Awaitable[Any]]


# =============================================================================
# CONFIGURATION & STATE
# =============================================================================

class TaskState(str, Enum):
    """Lifecycle of a queued task."""

    PENDING = "pending"
    RETRYING = "retrying"
    DEAD_LETTERED = "dead_lettered"
    COMPLETED = "completed"


class SchedulingPolicy(str, Enum):
    """
    Where a failed task is reinserted.

    RETRY_FIRST: head of the queue; the task is retried before anything
        queued after it (strict ordering, may starve later tasks)
    FAIR_ROTATE: tail of the queue; other tasks get their turn first
    """

    RETRY_FIRST = "retry_first"
    FAIR_ROTATE = "fair_rotate"


@dataclass
class QueueConfig:
    """
    Task queue configuration parameters.

    Attributes:
        jitter_min_seconds: Lower bound of the post-success delay
        jitter_max_seconds: Upper bound of the post-success delay
        backoff_base_seconds: Base of the exponential failure backoff
        backoff_max_seconds: Backoff delay cap
        max_attempts: Failures before a task is dead-lettered (None = unbounded)
        policy: Reinsertion policy for failed tasks
        dead_letter_limit: Dead letters retained for inspection
    """
    jitter_min_seconds: float = 1.5
    jitter_max_seconds: float = 3.5
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 3600.0
    max_attempts: int | None = 5
    policy: SchedulingPolicy = SchedulingPolicy.RETRY_FIRST
    dead_letter_limit: int = 100

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "QueueConfig":
        queue = (settings or get_settings()).queue
        return cls(
            jitter_min_seconds=queue.QUEUE_JITTER_MIN_SECONDS,
            jitter_max_seconds=queue.QUEUE_JITTER_MAX_SECONDS,
            backoff_base_seconds=queue.QUEUE_BACKOFF_BASE_SECONDS,
            backoff_max_seconds=queue.QUEUE_BACKOFF_MAX_SECONDS,
            max_attempts=queue.QUEUE_MAX_ATTEMPTS,
            policy=SchedulingPolicy(queue.QUEUE_SCHEDULING_POLICY),
            dead_letter_limit=queue.QUEUE_DEAD_LETTER_LIMIT,
        )


@dataclass
class QueuedTask:
    """
    A unit of work waiting in the queue.

    Attributes:
        operation: Zero-argument coroutine factory, called once per attempt
        future: Resolved exactly once with the result or terminal error
        name: Label for logs and dead letters
        retry_count: Failed attempts so far
        state: Current lifecycle state
    """
    operation: Operation
    future: asyncio.Future
    name: str
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    retry_count: int = 0
    state: TaskState = TaskState.PENDING
    enqueued_at: float = field(default_factory=time.time)
    last_error: BaseException | None = None


@dataclass(frozen=True)
class DeadLetter:
    """Record of a task that reached the retry ceiling."""

    task_id: str
    name: str
    attempts: int
    error_type: str
    error: str
    dead_lettered_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "name": self.name,
            "attempts": self.attempts,
            "error_type": self.error_type,
            "error": self.error,
            "dead_lettered_at": self.dead_lettered_at,
        }


# =============================================================================
# TASK QUEUE
# =============================================================================

class TaskQueue:
    """
    Single-worker FIFO queue with retry, backoff and dead-lettering.

    Usage:
        queue = TaskQueue()
        result = await queue.enqueue(lambda: remote.post(text), name="post")

    Sleeps go through ``sleep`` and jitter through ``rng`` so tests can
    observe every delay without waiting.
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
        events: EventChannel | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._config = config or QueueConfig.from_settings()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._events = events
        self._metrics = metrics

        self._tasks: deque[QueuedTask] = deque()
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task | None = None

        self._consecutive_failures = 0
        self._dead_letters: deque[DeadLetter] = deque(maxlen=self._config.dead_letter_limit)
        self._completed = 0
        self._retried = 0

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def dead_letters(self) -> tuple[DeadLetter, ...]:
        return tuple(self._dead_letters)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def __len__(self) -> int:
        return len(self._tasks)

    async def enqueue(self, operation: Operation, *, name: str | None = None) -> Any:
        """
        Queue an operation and wait for its outcome.

        Args:
            operation: Zero-argument callable returning an awaitable
            name: Label for logs (defaults to the callable's name)

        Returns:
            Whatever the operation returned on its successful attempt

        Raises:
            GivenUpError: If the task was dead-lettered
        """
        loop = asyncio.get_running_loop()
        task = QueuedTask(
            operation=operation,
            future=loop.create_future(),
            name=name or getattr(operation, "__name__", "task"),
        )

        async with self._lock:
            self._tasks.append(task)
            depth = len(self._tasks)
            self._idle.clear()
            self._ensure_worker()

        self._record_depth(depth)
        log_stage(
            logger,
            Stage.QUEUE_ENQUEUE,
            "Task enqueued",
            level="debug",
            task_id=task.task_id,
            task_name=task.name,
            depth=depth,
        )

        return await task.future

    async def join(self) -> None:
        """Wait until the queue is empty and the worker has stopped."""
        await self._idle.wait()

    def stats(self) -> dict[str, Any]:
        return {
            "depth": len(self._tasks),
            "running": self.is_running,
            "consecutive_failures": self._consecutive_failures,
            "completed": self._completed,
            "retried": self._retried,
            "dead_lettered": len(self._dead_letters),
            "policy": self._config.policy.value,
            "max_attempts": self._config.max_attempts,
        }

    def backoff_delay(self, queue_length: int, consecutive_failures: int) -> float:
        """
        Delay after a failure.

        Formula: min(base * 2^(queue_length + consecutive_failures - 1), max)

        Example (base=1s, max=3600s):
            queue_length=2, consecutive_failures=1: 4s
            queue_length=2, consecutive_failures=2: 8s
            queue_length=1, consecutive_failures=1: 2s
        """
        exponent = min(max(queue_length + consecutive_failures - 1, 0), 64)
        return min(
            self._config.backoff_base_seconds * (2 ** exponent),
            self._config.backoff_max_seconds,
        )

    def jitter_delay(self) -> float:
        return self._rng.uniform(self._config.jitter_min_seconds, self._config.jitter_max_seconds)

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        # Called with the lock held
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain(), name="feedgate-task-queue")

    async def _drain(self) -> None:
        try:
            await self._drain_tasks()
        except asyncio.CancelledError:
            # Worker cancelled: release every waiting caller
            async with self._lock:
                pending = list(self._tasks)
                self._tasks.clear()
                self._worker = None
                self._idle.set()
            for task in pending:
                task.future.cancel()
            self._record_depth(0)
            raise

    async def _drain_tasks(self) -> None:
        while True:
            async with self._lock:
                if not self._tasks:
                    self._worker = None
                    self._idle.set()
                    self._record_depth(0)
                    return
                task = self._tasks.popleft()

            if task.future.done():
                # Caller stopped waiting
                logger.debug("Skipping abandoned task", task_id=task.task_id, task_name=task.name)
                continue

            log_stage(
                logger,
                Stage.QUEUE_EXECUTE,
                "Executing task",
                level="debug",
                task_id=task.task_id,
                task_name=task.name,
                attempt=task.retry_count + 1,
            )

            try:
                result = await task.operation()
            except asyncio.CancelledError as e:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    task.future.cancel()
                    raise
                # Cancelled from inside the operation; not retried
                self._consecutive_failures += 1
                task.retry_count += 1
                task.last_error = e
                self._dead_letter(task, e)
                await self._sleep(self.jitter_delay())
                continue
            except Exception as e:
                await self._handle_failure(task, e)
                continue

            self._handle_success(task, result)
            await self._sleep(self.jitter_delay())

    def _handle_success(self, task: QueuedTask, result: Any) -> None:
        task.state = TaskState.COMPLETED
        self._consecutive_failures = 0
        self._completed += 1
        if not task.future.done():
            task.future.set_result(result)
        if self._metrics:
            self._metrics.record_queue_task("completed")

    async def _handle_failure(self, task: QueuedTask, error: Exception) -> None:
        task.retry_count += 1
        task.last_error = error
        self._consecutive_failures += 1

        max_attempts = self._config.max_attempts
        if max_attempts is not None and task.retry_count >= max_attempts:
            self._dead_letter(task, error)
            await self._sleep(self.jitter_delay())
            return

        task.state = TaskState.RETRYING
        async with self._lock:
            if self._config.policy == SchedulingPolicy.RETRY_FIRST:
                self._tasks.appendleft(task)
            else:
                self._tasks.append(task)
            depth = len(self._tasks)

        delay = self.backoff_delay(depth, self._consecutive_failures)
        self._retried += 1

        log_stage(
            logger,
            Stage.QUEUE_BACKOFF,
            "Task failed, backing off",
            level="warning",
            task_id=task.task_id,
            task_name=task.name,
            retry_count=task.retry_count,
            depth=depth,
            delay_seconds=delay,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._events:
            self._events.publish(
                GatewayEventType.TASK_RETRYING,
                task_id=task.task_id,
                name=task.name,
                retry_count=task.retry_count,
                delay_seconds=delay,
            )
        if self._metrics:
            self._metrics.record_queue_task("retried")
            self._metrics.record_queue_backoff(delay)
            self._metrics.set_queue_depth(depth)

        await self._sleep(delay)

    def _dead_letter(self, task: QueuedTask, error: BaseException) -> None:
        task.state = TaskState.DEAD_LETTERED
        letter = DeadLetter(
            task_id=task.task_id,
            name=task.name,
            attempts=task.retry_count,
            error_type=type(error).__name__,
            error=str(error),
            dead_lettered_at=time.time(),
        )
        self._dead_letters.append(letter)

        log_stage(
            logger,
            Stage.QUEUE_DEAD_LETTER,
            "Task dead-lettered after max attempts",
            level="error",
            **letter.to_dict(),
        )

        if not task.future.done():
            given_up = GivenUpError(
                f"Task '{task.name}' gave up after {task.retry_count} attempts",
                details={
                    "task_id": task.task_id,
                    "attempts": task.retry_count,
                    "last_error_type": type(error).__name__,
                    "last_error": str(error),
                },
            )
            given_up.__cause__ = error
            task.future.set_exception(given_up)

        if self._events:
            self._events.publish(GatewayEventType.TASK_DEAD_LETTERED, **letter.to_dict())
        if self._metrics:
            self._metrics.record_queue_task("dead_lettered")
            self._metrics.record_error(type(error).__name__, "queue")

    def _record_depth(self, depth: int) -> None:
        if self._metrics:
            self._metrics.set_queue_depth(depth)
