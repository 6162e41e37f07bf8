"""Host schedulers — the timing primitives a TimerRegistry runs on.

A host scheduler does the actual waiting. It offers four calls, all in
milliseconds and all non-blocking:

    call_every(interval_ms, fn) -> handle     repeat fn until cancelled
    call_after(delay_ms, fn) -> handle        run fn once
    cancel_every(handle)                      stop a repeating timer
    cancel_after(handle)                      stop a pending one-shot

Handles are positive ints, never reused by the same scheduler. Cancelling an
unknown or finished handle is a silent no-op.

Three hosts ship here:
- ManualScheduler: virtual clock moved by advance(). Deterministic.
- AsyncioScheduler: asyncio loop.call_later. Single-threaded.
- ThreadScheduler: daemon threads. Callbacks run off the calling thread.

A Textual-backed host lives in facile.textual.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Protocol

logger = logging.getLogger("facile.scheduler")

Callback = Callable[[], None]


class HostScheduler(Protocol):
    """Timing primitives a TimerRegistry consumes.

    call_every() and call_after() must return before fn can run: fn is never
    called from inside call_*. The registry arms timers while holding its
    table lock and records the returned handle before the first firing can
    observe it.
    """

    def call_every(self, interval_ms: int, fn: Callback) -> int: ...

    def call_after(self, delay_ms: int, fn: Callback) -> int: ...

    def cancel_every(self, handle: int) -> None: ...

    def cancel_after(self, handle: int) -> None: ...


def _check_positive(ms: int) -> None:
    if ms <= 0:
        raise ValueError(f"host timers need a positive duration, got {ms!r}")


# ─── Virtual clock ───────────────────────────────────────────────────────────


@dataclass
class _Pending:
    handle: int
    due: float
    fn: Callback
    interval: int | None = None  # None for one-shots
    seq: int = field(default=0)


class ManualScheduler:
    """Virtual-time host. Nothing fires until advance() is called.

    Timers due at the same instant fire in the order they were (re)armed.
    A callback that raises is logged and the clock keeps going.

    Usage:
        host = ManualScheduler()
        host.call_after(100, lambda: print("fired"))
        host.advance(99)    # nothing
        host.advance(1)     # prints "fired"
    """

    def __init__(self) -> None:
        self._now: float = 0
        self._ids = itertools.count(1)
        self._seq = itertools.count()
        self._pending: dict[int, _Pending] = {}

    @property
    def now(self) -> float:
        """Milliseconds of virtual time elapsed."""
        return self._now

    def call_every(self, interval_ms: int, fn: Callback) -> int:
        _check_positive(interval_ms)
        handle = next(self._ids)
        self._pending[handle] = _Pending(
            handle, self._now + interval_ms, fn, interval_ms, next(self._seq)
        )
        return handle

    def call_after(self, delay_ms: int, fn: Callback) -> int:
        _check_positive(delay_ms)
        handle = next(self._ids)
        self._pending[handle] = _Pending(handle, self._now + delay_ms, fn, None, next(self._seq))
        return handle

    def cancel_every(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def cancel_after(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def advance(self, ms: float) -> int:
        """Move the clock forward by ms, firing everything that comes due.

        Returns the number of callbacks run.
        """
        if ms < 0:
            raise ValueError("cannot move the clock backwards")
        target = self._now + ms
        fired = 0
        while True:
            due = [p for p in self._pending.values() if p.due <= target]
            if not due:
                break
            timer = min(due, key=lambda p: (p.due, p.seq))
            self._now = timer.due
            if timer.interval is None:
                del self._pending[timer.handle]
            else:
                timer.due += timer.interval
                timer.seq = next(self._seq)
            fired += 1
            try:
                timer.fn()
            except Exception:
                logger.exception("Timer callback %d raised", timer.handle)
        self._now = target
        return fired

    def pending(self) -> int:
        """Number of armed timers."""
        return len(self._pending)

    def __repr__(self) -> str:
        return f"ManualScheduler(now={self._now}, pending={len(self._pending)})"


# ─── asyncio ─────────────────────────────────────────────────────────────────


class AsyncioScheduler:
    """Host backed by an asyncio event loop.

    With no loop given, the running loop is looked up on each call, so the
    scheduler must be used from inside that loop. Callback exceptions go to
    the loop's exception handler.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._ids = itertools.count(1)
        self._handles: dict[int, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def call_every(self, interval_ms: int, fn: Callback) -> int:
        _check_positive(interval_ms)
        handle = next(self._ids)
        self._arm_repeat(handle, interval_ms / 1000, fn)
        return handle

    def _arm_repeat(self, handle: int, seconds: float, fn: Callback) -> None:
        self._handles[handle] = self._get_loop().call_later(
            seconds, self._tick, handle, seconds, fn
        )

    def _tick(self, handle: int, seconds: float, fn: Callback) -> None:
        # Re-arm first so a raising callback keeps its schedule.
        self._arm_repeat(handle, seconds, fn)
        fn()

    def call_after(self, delay_ms: int, fn: Callback) -> int:
        _check_positive(delay_ms)
        handle = next(self._ids)
        self._handles[handle] = self._get_loop().call_later(
            delay_ms / 1000, self._fire_once, handle, fn
        )
        return handle

    def _fire_once(self, handle: int, fn: Callback) -> None:
        self._handles.pop(handle, None)
        fn()

    def cancel_every(self, handle: int) -> None:
        self._cancel(handle)

    def cancel_after(self, handle: int) -> None:
        self._cancel(handle)

    def _cancel(self, handle: int) -> None:
        timer = self._handles.pop(handle, None)
        if timer is not None:
            timer.cancel()

    def pending(self) -> int:
        return len(self._handles)


# ─── Threads ─────────────────────────────────────────────────────────────────


class ThreadScheduler:
    """Host backed by daemon threads.

    One-shots use threading.Timer. Each repeating timer gets a thread that
    waits on an Event between runs, so cancelling wakes it immediately.
    Callbacks run on those threads; exceptions are logged.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._timers: dict[int, threading.Timer] = {}
        self._stops: dict[int, threading.Event] = {}

    def call_every(self, interval_ms: int, fn: Callback) -> int:
        _check_positive(interval_ms)
        stop = threading.Event()
        seconds = interval_ms / 1000

        def _loop() -> None:
            while not stop.wait(seconds):
                _run_logged(handle, fn)

        with self._lock:
            handle = next(self._ids)
            self._stops[handle] = stop
        threading.Thread(target=_loop, name=f"facile-every-{handle}", daemon=True).start()
        return handle

    def call_after(self, delay_ms: int, fn: Callback) -> int:
        _check_positive(delay_ms)

        def _fire() -> None:
            with self._lock:
                self._timers.pop(handle, None)
            _run_logged(handle, fn)

        with self._lock:
            handle = next(self._ids)
            t = threading.Timer(delay_ms / 1000, _fire)
            t.daemon = True
            self._timers[handle] = t
        t.start()
        return handle

    def cancel_every(self, handle: int) -> None:
        with self._lock:
            stop = self._stops.pop(handle, None)
        if stop is not None:
            stop.set()

    def cancel_after(self, handle: int) -> None:
        with self._lock:
            t = self._timers.pop(handle, None)
        if t is not None:
            t.cancel()

    def pending(self) -> int:
        with self._lock:
            return len(self._timers) + len(self._stops)


def _run_logged(handle: int, fn: Callback) -> None:
    try:
        fn()
    except Exception:
        logger.exception("Timer callback %d raised", handle)
