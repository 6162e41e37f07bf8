"""Tests for host schedulers — virtual clock, asyncio and threads."""

import asyncio
import logging
import threading
import time

import pytest

from facile import AsyncioScheduler, ManualScheduler, ThreadScheduler, TimerRegistry


class TestHostContract:
    @pytest.mark.parametrize("make_host", [
        ManualScheduler,
        lambda: AsyncioScheduler(asyncio.new_event_loop()),
        ThreadScheduler,
    ])
    def test_call_never_runs_fn_before_returning(self, make_host):
        host = make_host()
        log = []
        every = host.call_every(1000, lambda: log.append("every"))
        after = host.call_after(200, lambda: log.append("after"))
        assert log == []
        host.cancel_every(every)
        host.cancel_after(after)
        loop = getattr(host, "_loop", None)
        if loop is not None:
            loop.close()


class TestManualScheduler:
    def test_nothing_fires_without_advance(self):
        host = ManualScheduler()
        log = []
        host.call_after(10, lambda: log.append(1))
        assert log == []
        assert host.pending() == 1

    def test_same_instant_fires_in_creation_order(self):
        host = ManualScheduler()
        log = []
        host.call_after(10, lambda: log.append("a"))
        host.call_after(10, lambda: log.append("b"))
        host.call_after(5, lambda: log.append("c"))
        assert host.advance(10) == 3
        assert log == ["c", "a", "b"]
        assert host.now == 10

    def test_handles_are_unique(self):
        host = ManualScheduler()
        a = host.call_after(10, lambda: None)
        host.advance(10)
        b = host.call_every(10, lambda: None)
        assert a != b
        assert a > 0 and b > 0

    def test_cancel_unknown_is_noop(self):
        host = ManualScheduler()
        host.cancel_every(99)
        host.cancel_after(99)

    def test_rejects_non_positive(self):
        host = ManualScheduler()
        with pytest.raises(ValueError):
            host.call_every(0, lambda: None)
        with pytest.raises(ValueError):
            host.advance(-1)

    def test_raising_callback_logged_and_clock_continues(self, caplog):
        host = ManualScheduler()
        log = []

        def boom():
            raise RuntimeError("boom")

        host.call_every(10, boom)
        host.call_after(25, lambda: log.append(host.now))
        with caplog.at_level(logging.ERROR, logger="facile.scheduler"):
            host.advance(30)
        assert log == [25]
        assert len([r for r in caplog.records if "raised" in r.getMessage()]) == 3


class TestAsyncioScheduler:
    def test_registry_on_event_loop(self):
        log = []

        async def main():
            timers = TimerRegistry(AsyncioScheduler())
            timers.every(10, lambda: log.append("tick"), name="tick")
            once = timers.after(25, lambda: log.append("once"))
            await asyncio.sleep(0.1)
            assert once not in timers
            assert timers.stop("tick") is True
            count = len(log)
            await asyncio.sleep(0.05)
            assert len(log) == count
            return timers

        timers = asyncio.run(main())
        assert "once" in log
        assert log.count("tick") >= 2
        assert len(timers) == 0

    def test_cancel_before_fire(self):
        log = []

        async def main():
            host = AsyncioScheduler()
            handle = host.call_after(20, lambda: log.append(1))
            host.cancel_after(handle)
            await asyncio.sleep(0.05)
            return host.pending()

        assert asyncio.run(main()) == 0
        assert log == []

    def test_explicit_loop(self):
        loop = asyncio.new_event_loop()
        try:
            host = AsyncioScheduler(loop)
            log = []
            host.call_after(1, lambda: log.append(1))
            loop.run_until_complete(asyncio.sleep(0.02))
            assert log == [1]
        finally:
            loop.close()


class TestThreadScheduler:
    def test_one_shot_fires_and_cleans_up(self):
        timers = TimerRegistry(ThreadScheduler())
        done = threading.Event()
        handle = timers.after(10, done.set)
        assert done.wait(timeout=2)
        # Cleanup runs right after the callback on the timer thread.
        deadline = time.monotonic() + 2
        while handle in timers and time.monotonic() < deadline:
            time.sleep(0.005)
        assert handle not in timers
        assert timers.stop(handle) is False

    def test_repeating_until_stopped(self):
        timers = TimerRegistry(ThreadScheduler())
        ticks = []
        enough = threading.Event()

        def tick():
            ticks.append(1)
            if len(ticks) >= 3:
                enough.set()

        timers.every(5, tick, name="t")
        assert enough.wait(timeout=2)
        assert timers.stop("t") is True
        time.sleep(0.03)
        count = len(ticks)
        time.sleep(0.05)
        assert len(ticks) == count
        assert timers.scheduler.pending() == 0

    def test_stop_before_fire(self):
        host = ThreadScheduler()
        fired = threading.Event()
        handle = host.call_after(50, fired.set)
        host.cancel_after(handle)
        assert not fired.wait(timeout=0.1)
