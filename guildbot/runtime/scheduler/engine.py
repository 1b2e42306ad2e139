"""Task scheduler -- recurring background jobs on a bounded worker pool.

One loop coroutine owns the heap of upcoming runs and all task state.  It
claims due tasks, hands them to ``workers`` worker coroutines through a ready
queue and learns about finished runs from its inbox.  Workers never touch the
heap or the task records directly.
"""

from __future__ import annotations

import asyncio
import enum
import heapq
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..errors import DuplicateTask, TaskFailed
from ..hooks import EventKind, HookBus, TaskCompletedEvent, TaskFailedEvent
from ..util.async_helpers import invoke
from .schedules import Schedule, ZonedSchedule

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TaskContext:
    task: str
    scheduled_for: datetime
    scheduler: TaskScheduler


TaskExecutor = Callable[[TaskContext], Any]


@dataclass(eq=False)
class Task:
    name: str
    schedule: Schedule
    executor: TaskExecutor
    run_on_load: bool = False
    module: str = ""
    next_run: datetime | None = None
    state: TaskState = TaskState.IDLE
    last_run: datetime | None = None
    last_duration: float | None = None
    last_error: str | None = None
    run_count: int = 0
    failure_count: int = 0
    skipped_ticks: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schedule": self.schedule.describe(),
            "module": self.module,
            "state": self.state.value,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_duration": self.last_duration,
            "last_error": self.last_error,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "skipped_ticks": self.skipped_ticks,
        }


@dataclass(frozen=True)
class _Added:
    name: str


@dataclass(frozen=True)
class _Completion:
    name: str
    scheduled_for: datetime
    started_at: datetime
    duration: float
    result: Any = None
    error: TaskFailed | None = None


class TaskScheduler:
    def __init__(
        self,
        hooks: HookBus | None = None,
        *,
        workers: int = 4,
        clock: Callable[[], datetime] = _utcnow,
        timezone: str = "UTC",
    ) -> None:
        if workers < 1:
            raise ValueError("Scheduler needs at least one worker")
        self._hooks = hooks
        self._worker_count = workers
        self._clock = clock
        self._timezone = timezone
        self._tasks: dict[str, Task] = {}
        self._heap: list[tuple[datetime, int, str]] = []
        self._seq = itertools.count()
        self._inbox: asyncio.Queue[_Added | _Completion] = asyncio.Queue()
        self._ready: asyncio.Queue[tuple[Task, datetime]] = asyncio.Queue()
        self._loop_task: asyncio.Task[None] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def worker_count(self) -> int:
        return self._worker_count

    # -- registration ------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        if task.name in self._tasks:
            raise DuplicateTask(task.name)
        if isinstance(task.schedule, ZonedSchedule):
            task.schedule.use_default_zone(self._timezone)
        now = self._clock()
        task.next_run = now if task.run_on_load else task.schedule.first_run(now)
        task.state = TaskState.IDLE
        self._tasks[task.name] = task
        if self._running:
            self._inbox.put_nowait(_Added(task.name))
        else:
            self._push(task)
        logger.info(
            "[scheduler] added task %s (%s), next run %s",
            task.name, task.schedule.describe(), task.next_run.isoformat(),
        )
        return task

    def add(
        self,
        name: str,
        schedule: Schedule,
        executor: TaskExecutor,
        *,
        run_on_load: bool = False,
        module: str = "",
    ) -> Task:
        return self.add_task(
            Task(name=name, schedule=schedule, executor=executor,
                 run_on_load=run_on_load, module=module)
        )

    def get(self, name: str) -> Task | None:
        return self._tasks.get(name)

    def list_tasks(self) -> list[Task]:
        far = datetime.max.replace(tzinfo=UTC)
        return sorted(self._tasks.values(), key=lambda t: (t.next_run or far, t.name))

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        loop = asyncio.get_running_loop()
        self._workers = [
            loop.create_task(self._worker(i), name=f"scheduler-worker-{i}")
            for i in range(self._worker_count)
        ]
        self._loop_task = loop.create_task(self._run(), name="scheduler-loop")
        logger.info(
            "[scheduler] started (%d tasks, %d workers)", len(self._tasks), self._worker_count,
        )

    async def stop(self, grace: float = 10.0) -> None:
        """Stop claiming, wait up to *grace* seconds for running tasks, cancel the rest."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        # Runs that were claimed but never picked up by a worker are dropped.
        while not self._ready.empty():
            self._ready.get_nowait()
            self._ready.task_done()

        if self._workers:
            try:
                await asyncio.wait_for(self._ready.join(), timeout=grace)
            except TimeoutError:
                in_flight = [t.name for t in self._tasks.values() if t.state is TaskState.RUNNING]
                logger.warning(
                    "[scheduler] grace period of %.1fs expired, abandoning %s",
                    grace, ", ".join(in_flight) or "nothing",
                )
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []

        self._drain_inbox()
        for task in self._tasks.values():
            task.state = TaskState.CANCELLED
        self._running = False
        logger.info("[scheduler] stopped")

    # -- loop --------------------------------------------------------------

    async def _run(self) -> None:
        logger.info("[scheduler] loop started")
        while True:
            self._drain_inbox()
            now = self._clock()
            self._claim_due(now)
            delay = self._seconds_until_next(now)
            try:
                async with asyncio.timeout(delay):
                    message = await self._inbox.get()
            except TimeoutError:
                continue
            self._handle(message)

    def _seconds_until_next(self, now: datetime) -> float | None:
        if not self._heap:
            return None
        return max(0.0, (self._heap[0][0] - now).total_seconds())

    def _push(self, task: Task) -> None:
        heapq.heappush(self._heap, (task.next_run, next(self._seq), task.name))

    def _claim_due(self, now: datetime) -> list[Task]:
        """Claim every task due at *now* and queue it for a worker.

        Each due task is rescheduled immediately from its previous run time.
        A task that is still running skips this tick.
        """
        claimed: list[Task] = []
        while self._heap and self._heap[0][0] <= now:
            due, _, name = heapq.heappop(self._heap)
            task = self._tasks[name]
            if task.state is TaskState.CANCELLED or task.next_run != due:
                continue
            task.next_run = task.schedule.next_after(due, now)
            self._push(task)
            if task.state is TaskState.RUNNING:
                task.skipped_ticks += 1
                logger.info(
                    "[scheduler] %s still running, skipped tick %s (next %s)",
                    name, due.isoformat(), task.next_run.isoformat(),
                )
                continue
            task.state = TaskState.RUNNING
            self._ready.put_nowait((task, due))
            claimed.append(task)
        return claimed

    def _drain_inbox(self) -> None:
        while not self._inbox.empty():
            self._handle(self._inbox.get_nowait())

    def _handle(self, message: _Added | _Completion) -> None:
        if isinstance(message, _Added):
            task = self._tasks.get(message.name)
            if task is not None and task.state is not TaskState.CANCELLED:
                self._push(task)
            return

        task = self._tasks[message.name]
        task.last_run = message.started_at
        task.last_duration = message.duration
        task.run_count += 1
        if task.state is TaskState.RUNNING:
            task.state = TaskState.IDLE

        if message.error is None:
            task.last_error = None
            self._publish(EventKind.TASK_COMPLETED, TaskCompletedEvent(
                task=task.name,
                scheduled_for=message.scheduled_for,
                duration=message.duration,
                result=message.result,
            ))
        else:
            task.failure_count += 1
            task.last_error = str(message.error.cause)
            self._publish(EventKind.TASK_FAILED, TaskFailedEvent(
                task=task.name,
                scheduled_for=message.scheduled_for,
                duration=message.duration,
                error=message.error,
            ))

    def _publish(self, kind: EventKind, payload: Any) -> None:
        if self._hooks is not None:
            self._hooks.publish(kind, payload)

    # -- workers -----------------------------------------------------------

    async def _worker(self, index: int) -> None:
        while True:
            task, due = await self._ready.get()
            started_at = self._clock()
            started = time.monotonic()
            result: Any = None
            error: TaskFailed | None = None
            try:
                logger.debug("[scheduler] worker %d running %s", index, task.name)
                result = await invoke(task.executor, TaskContext(task.name, due, self))
            except Exception as exc:
                error = TaskFailed(task.name, exc)
                logger.error("[scheduler] task %s failed: %s", task.name, exc, exc_info=True)
            finally:
                duration = time.monotonic() - started
                self._ready.task_done()
            self._inbox.put_nowait(
                _Completion(task.name, due, started_at, duration, result, error)
            )
