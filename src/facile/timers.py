"""Named timer registry — repeating and one-shot callbacks you can stop later.

A TimerRegistry keeps one TimerEntry per live timer, in creation order. Each
entry is addressable by the handle its host scheduler assigned or by an
optional name. Names need not be unique; stopping by name hits the first
entry created with that name.

One-shot entries remove themselves after their callback runs, whether it
returned or raised. Stopping one that already fired is the same as stopping
an unknown handle: TimerNotFound is reported and stop() returns False.

Misuse is reported, not raised. every()/after() return FAILED for a bad
interval; stop() returns False for an unknown timer.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable

from facile.errors import InvalidInterval, Reporter, TimerNotFound, log_report
from facile.scheduler import HostScheduler, ThreadScheduler

logger = logging.getLogger("facile.timers")

#: Returned by every()/after() when no timer was created. Never a valid handle.
FAILED = -1

TimerCallback = Callable[[], None]


class TimerKind(enum.Enum):
    REPEATING = "repeating"
    ONE_SHOT = "one-shot"


@dataclass(frozen=True)
class TimerEntry:
    handle: int
    name: str | None
    kind: TimerKind
    interval_ms: int


def normalize_interval(ms: float) -> int | None:
    """Floor, then drop the sign. None for NaN and infinities.

    >>> normalize_interval(-5)
    5
    >>> normalize_interval(0.9)
    0
    """
    try:
        return abs(math.floor(ms))
    except (ValueError, OverflowError):
        return None


class TimerRegistry:
    """Table of live timers on top of a host scheduler.

    Usage:
        timers = TimerRegistry(ManualScheduler())
        timers.every(1000, tick, name="clock")
        timers.after(5000, lambda: timers.stop("clock"))

    The table is guarded by a lock that is never held while user code runs,
    so ThreadScheduler callbacks and re-entrant calls from callbacks are safe.
    """

    def __init__(
        self,
        scheduler: HostScheduler | None = None,
        *,
        report: Reporter = log_report,
    ) -> None:
        self._scheduler = scheduler if scheduler is not None else ThreadScheduler()
        self._report = report
        self._lock = threading.Lock()
        self._entries: list[TimerEntry] = []

    @property
    def scheduler(self) -> HostScheduler:
        return self._scheduler

    def every(self, interval_ms: float, callback: TimerCallback, *, name: str | None = None) -> int:
        """Run callback every interval_ms until stopped. Returns the handle or FAILED."""
        return self._start(TimerKind.REPEATING, interval_ms, callback, name)

    def after(self, delay_ms: float, callback: TimerCallback, *, name: str | None = None) -> int:
        """Run callback once after delay_ms. Returns the handle or FAILED."""
        return self._start(TimerKind.ONE_SHOT, delay_ms, callback, name)

    def _start(
        self,
        kind: TimerKind,
        interval_ms: float,
        callback: TimerCallback,
        name: str | None,
    ) -> int:
        ms = normalize_interval(interval_ms)
        if ms is None or ms <= 0:
            self._report(InvalidInterval(interval_ms, ms))
            return FAILED

        # Held until the entry is in the table, so a one-shot that fires on
        # another thread right away still finds (and removes) its entry.
        with self._lock:
            if kind is TimerKind.REPEATING:
                handle = self._scheduler.call_every(ms, callback)
            else:
                cell: list[int] = []
                handle = self._scheduler.call_after(
                    ms, lambda: self._fire_once(cell, callback)
                )
                cell.append(handle)
            self._entries.append(TimerEntry(handle, name or None, kind, ms))

        logger.debug("Started %s timer %d (%s), %d ms", kind.value, handle, name or "-", ms)
        return handle

    def _fire_once(self, cell: list[int], callback: TimerCallback) -> None:
        try:
            callback()
        finally:
            with self._lock:
                index = self._index_of(cell[0])
                if index is not None:
                    del self._entries[index]

    def stop(self, identifier: int | str) -> bool:
        """Cancel the timer with this handle (int) or the first with this name (str)."""
        with self._lock:
            index = self._index_of(identifier)
            entry = self._entries.pop(index) if index is not None else None

        if entry is None:
            self._report(TimerNotFound(identifier))
            return False

        self._cancel(entry)
        logger.debug("Stopped %s timer %d (%s)", entry.kind.value, entry.handle, entry.name or "-")
        return True

    def _cancel(self, entry: TimerEntry) -> None:
        if entry.kind is TimerKind.REPEATING:
            self._scheduler.cancel_every(entry.handle)
        else:
            self._scheduler.cancel_after(entry.handle)

    def _index_of(self, identifier: int | str) -> int | None:
        if isinstance(identifier, str):
            matches = (i for i, e in enumerate(self._entries) if e.name == identifier)
        elif isinstance(identifier, int) and not isinstance(identifier, bool):
            matches = (i for i, e in enumerate(self._entries) if e.handle == identifier)
        else:
            return None
        return next(matches, None)

    def get(self, identifier: int | str) -> TimerEntry | None:
        """Entry for a handle or name (first match), without reporting a miss."""
        with self._lock:
            index = self._index_of(identifier)
            return self._entries[index] if index is not None else None

    def entries(self) -> list[TimerEntry]:
        """Snapshot of live entries in creation order."""
        with self._lock:
            return list(self._entries)

    def stop_all(self) -> int:
        """Cancel every live timer. Returns how many were stopped."""
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
        for entry in entries:
            self._cancel(entry)
        if entries:
            logger.debug("Stopped %d timers", len(entries))
        return len(entries)

    def close(self) -> None:
        self.stop_all()

    def __enter__(self) -> TimerRegistry:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identifier: int | str) -> bool:
        return self.get(identifier) is not None

    def __repr__(self) -> str:
        return f"TimerRegistry({len(self)} active, {type(self._scheduler).__name__})"


# ─── Process-wide default ────────────────────────────────────────────────────

_default: TimerRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> TimerRegistry:
    """The shared registry behind every()/after()/stop(). Thread-hosted, created on first use."""
    global _default
    with _default_lock:
        if _default is None:
            _default = TimerRegistry(ThreadScheduler())
        return _default


def set_default_registry(registry: TimerRegistry | None) -> TimerRegistry | None:
    """Swap the shared registry. Returns the previous one; None resets to lazy creation.

    Call once at startup, e.g. with TimerRegistry(AsyncioScheduler(loop)).
    """
    global _default
    with _default_lock:
        previous, _default = _default, registry
    return previous


def every(interval_ms: float, callback: TimerCallback, *, name: str | None = None) -> int:
    """TimerRegistry.every() on the default registry."""
    return default_registry().every(interval_ms, callback, name=name)


def after(delay_ms: float, callback: TimerCallback, *, name: str | None = None) -> int:
    """TimerRegistry.after() on the default registry."""
    return default_registry().after(delay_ms, callback, name=name)


def stop(identifier: int | str) -> bool:
    """TimerRegistry.stop() on the default registry."""
    return default_registry().stop(identifier)
