"""Hook bus -- fire-and-forget fan-out of internal events.

Every subscription owns a queue and a delivery worker.  ``publish`` only
enqueues, so a slow or failing subscriber never delays the publisher or any
other subscriber.  Each subscriber sees the events of one kind in publish
order; there is no ordering guarantee across kinds.

``publish`` must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import HookSubscriberFailed
from ..util.async_helpers import invoke
from .events import EventKind

logger = logging.getLogger(__name__)

HookCallback = Callable[[Any], Any]


@dataclass(eq=False)
class Subscription:
    kind: EventKind
    order: int
    callback: HookCallback
    name: str
    delivered: int = 0
    failures: int = 0
    dropped: int = 0
    queue: asyncio.Queue[Any] = field(default_factory=asyncio.Queue, repr=False)
    worker: asyncio.Task[None] | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "order": self.order,
            "name": self.name,
            "delivered": self.delivered,
            "failures": self.failures,
            "dropped": self.dropped,
            "pending": self.queue.qsize(),
        }


def _callback_name(callback: HookCallback) -> str:
    module = getattr(callback, "__module__", "") or ""
    qualname = getattr(callback, "__qualname__", None) or type(callback).__name__
    return f"{module}.{qualname}" if module else qualname


class HookBus:
    """Events published before ``start`` wait in the queues, at most
    ``backlog`` per subscriber; later ones are dropped until the bus runs.
    """

    def __init__(self, backlog: int = 1000) -> None:
        self._backlog = backlog
        self._subscriptions: dict[EventKind, tuple[Subscription, ...]] = {}
        self._order = itertools.count()
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(
        self,
        kind: EventKind | str,
        callback: HookCallback,
        *,
        name: str | None = None,
    ) -> Subscription:
        kind = EventKind(kind)
        sub = Subscription(
            kind=kind,
            order=next(self._order),
            callback=callback,
            name=name or _callback_name(callback),
        )
        # Copy-on-write: publishers iterate over the tuple they looked up.
        with self._lock:
            self._subscriptions[kind] = self._subscriptions.get(kind, ()) + (sub,)
        if self._running:
            self._spawn(sub)
        logger.info("[hooks] subscribed %s to %s (#%d)", sub.name, kind.value, sub.order)
        return sub

    def subscriptions(self, kind: EventKind | str | None = None) -> list[Subscription]:
        if kind is not None:
            return list(self._subscriptions.get(EventKind(kind), ()))
        return sorted(
            (s for subs in self._subscriptions.values() for s in subs),
            key=lambda s: s.order,
        )

    def publish(self, kind: EventKind | str, payload: Any) -> int:
        """Queue *payload* for every subscriber of *kind*; return their count."""
        kind = EventKind(kind)
        subscribers = self._subscriptions.get(kind, ())
        for sub in subscribers:
            if not self._running and sub.queue.qsize() >= self._backlog:
                sub.dropped += 1
                if sub.dropped == 1:
                    logger.warning(
                        "[hooks] bus not started, dropping %s events for %s",
                        kind.value, sub.name,
                    )
                continue
            sub.queue.put_nowait(payload)
        if subscribers:
            logger.debug("[hooks] published %s to %d subscriber(s)", kind.value, len(subscribers))
        return len(subscribers)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for sub in self.subscriptions():
            self._spawn(sub)
        logger.info("[hooks] bus started (%d subscriptions)", len(self.subscriptions()))

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        if not self._running:
            return
        await asyncio.gather(*(s.queue.join() for s in self.subscriptions()))

    async def close(self, timeout: float = 5.0) -> None:
        if not self._running:
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except TimeoutError:
            logger.warning("[hooks] undelivered events dropped after %.1fs", timeout)
        self._running = False
        workers = [s.worker for s in self.subscriptions() if s.worker is not None]
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        for sub in self.subscriptions():
            sub.worker = None
        logger.info("[hooks] bus closed")

    def _spawn(self, sub: Subscription) -> None:
        if sub.worker is None or sub.worker.done():
            sub.worker = asyncio.get_running_loop().create_task(
                self._deliver(sub), name=f"hook:{sub.kind.value}:{sub.order}"
            )

    async def _deliver(self, sub: Subscription) -> None:
        while True:
            payload = await sub.queue.get()
            try:
                await invoke(sub.callback, payload)
                sub.delivered += 1
            except Exception as exc:
                sub.failures += 1
                failure = HookSubscriberFailed(sub.name, sub.kind.value, exc)
                logger.error("[hooks] %s", failure, exc_info=exc)
            finally:
                sub.queue.task_done()
