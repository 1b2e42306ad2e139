"""Tests for the hook bus."""

from __future__ import annotations

import asyncio
import logging

import pytest

from guildbot.runtime.hooks import EventKind, HookBus


class TestHookBus:
    async def test_failing_subscriber_does_not_affect_others(self, bus: HookBus) -> None:
        first: list[int] = []
        third: list[int] = []

        def boom(payload: int) -> None:
            raise RuntimeError(f"bad {payload}")

        bus.subscribe(EventKind.COMMAND_EXECUTED, first.append, name="first")
        failing = bus.subscribe(EventKind.COMMAND_EXECUTED, boom, name="boom")
        bus.subscribe(EventKind.COMMAND_EXECUTED, third.append, name="third")

        for i in range(5):
            assert bus.publish(EventKind.COMMAND_EXECUTED, i) == 3
        await bus.drain()

        assert first == [0, 1, 2, 3, 4]
        assert third == [0, 1, 2, 3, 4]
        assert failing.failures == 5
        assert failing.delivered == 0

    async def test_failure_is_logged(self, bus: HookBus, caplog: pytest.LogCaptureFixture) -> None:
        async def boom(payload: object) -> None:
            raise ValueError("nope")

        bus.subscribe(EventKind.TASK_FAILED, boom, name="audit")
        with caplog.at_level(logging.ERROR, logger="guildbot.runtime.hooks.bus"):
            bus.publish(EventKind.TASK_FAILED, object())
            await bus.drain()
        assert "Hook subscriber audit failed on task_failed: nope" in caplog.text

    async def test_publish_without_subscribers(self, bus: HookBus) -> None:
        assert bus.publish(EventKind.MESSAGE_RECEIVED, "hi") == 0

    async def test_kinds_are_isolated(self, bus: HookBus) -> None:
        executed: list[str] = []
        denied: list[str] = []
        bus.subscribe("command_executed", executed.append)
        bus.subscribe(EventKind.COMMAND_DENIED, denied.append)
        bus.publish(EventKind.COMMAND_DENIED, "x")
        await bus.drain()
        assert executed == []
        assert denied == ["x"]

    async def test_async_and_sync_callbacks(self, bus: HookBus) -> None:
        seen: list[str] = []

        async def async_cb(payload: str) -> None:
            seen.append(f"async:{payload}")

        def sync_cb(payload: str) -> None:
            seen.append(f"sync:{payload}")

        bus.subscribe(EventKind.MESSAGE_RECEIVED, async_cb)
        bus.subscribe(EventKind.MESSAGE_RECEIVED, sync_cb)
        bus.publish(EventKind.MESSAGE_RECEIVED, "m")
        await bus.drain()
        assert sorted(seen) == ["async:m", "sync:m"]

    async def test_slow_subscriber_does_not_block(self, bus: HookBus) -> None:
        release = asyncio.Event()
        fast_done = asyncio.Event()

        async def slow(payload: object) -> None:
            await release.wait()

        async def fast(payload: object) -> None:
            fast_done.set()

        slow_sub = bus.subscribe(EventKind.COMMAND_EXECUTED, slow)
        bus.subscribe(EventKind.COMMAND_EXECUTED, fast)
        bus.publish(EventKind.COMMAND_EXECUTED, 1)

        await asyncio.wait_for(fast_done.wait(), timeout=1.0)
        assert slow_sub.delivered == 0
        release.set()
        await bus.drain()
        assert slow_sub.delivered == 1

    async def test_events_queue_until_start(self) -> None:
        hooks = HookBus()
        seen: list[int] = []
        sub = hooks.subscribe(EventKind.TASK_COMPLETED, seen.append)
        hooks.publish(EventKind.TASK_COMPLETED, 1)
        hooks.publish(EventKind.TASK_COMPLETED, 2)
        await hooks.drain()
        assert sub.to_dict()["pending"] == 2
        assert seen == []

        hooks.start()
        await hooks.drain()
        assert seen == [1, 2]
        await hooks.close()

    async def test_backlog_is_bounded_until_start(self, caplog: pytest.LogCaptureFixture) -> None:
        hooks = HookBus(backlog=2)
        seen: list[int] = []
        sub = hooks.subscribe(EventKind.MESSAGE_RECEIVED, seen.append)
        with caplog.at_level(logging.WARNING, logger="guildbot.runtime.hooks.bus"):
            for i in range(5):
                hooks.publish(EventKind.MESSAGE_RECEIVED, i)
        assert sub.to_dict()["pending"] == 2
        assert sub.dropped == 3
        assert caplog.text.count("bus not started") == 1

        hooks.start()
        await hooks.drain()
        hooks.publish(EventKind.MESSAGE_RECEIVED, 5)
        hooks.publish(EventKind.MESSAGE_RECEIVED, 6)
        hooks.publish(EventKind.MESSAGE_RECEIVED, 7)
        await hooks.drain()
        assert seen == [0, 1, 5, 6, 7]
        assert sub.dropped == 3
        await hooks.close()

    async def test_subscribe_while_running(self, bus: HookBus) -> None:
        seen: list[str] = []
        bus.subscribe(EventKind.COMMAND_FAILED, seen.append)
        bus.publish(EventKind.COMMAND_FAILED, "late")
        await bus.drain()
        assert seen == ["late"]

    async def test_close_gives_up_after_timeout(self, caplog: pytest.LogCaptureFixture) -> None:
        hooks = HookBus()
        hooks.start()

        async def stuck(payload: object) -> None:
            await asyncio.Event().wait()

        sub = hooks.subscribe(EventKind.MESSAGE_RECEIVED, stuck)
        hooks.publish(EventKind.MESSAGE_RECEIVED, 1)
        hooks.publish(EventKind.MESSAGE_RECEIVED, 2)
        with caplog.at_level(logging.WARNING, logger="guildbot.runtime.hooks.bus"):
            await hooks.close(timeout=0.05)
        assert not hooks.running
        assert sub.worker is None
        assert "undelivered events dropped" in caplog.text

    async def test_subscriptions_listing(self, bus: HookBus) -> None:
        def a(payload: object) -> None: ...

        def b(payload: object) -> None: ...

        bus.subscribe(EventKind.TASK_FAILED, a, name="a")
        bus.subscribe(EventKind.COMMAND_DENIED, b, name="b")
        assert [s.name for s in bus.subscriptions()] == ["a", "b"]
        assert [s.name for s in bus.subscriptions("task_failed")] == ["a"]
        assert bus.subscriptions(EventKind.TASK_COMPLETED) == []
        info = bus.subscriptions()[1].to_dict()
        assert info["kind"] == "command_denied"
        assert info["name"] == "b"
        assert info["delivered"] == 0

    async def test_default_name_is_qualified(self, bus: HookBus) -> None:
        def on_message(payload: object) -> None: ...

        sub = bus.subscribe(EventKind.MESSAGE_RECEIVED, on_message)
        assert sub.name.endswith("on_message")
        assert "test_hook_bus" in sub.name

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            HookBus().subscribe("nope", print)
