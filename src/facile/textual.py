"""Textual integration for facile. Opt-in — requires textual.

TextualScheduler lets a TimerRegistry run on an App's own timers, so timer
callbacks fire on the app's event loop next to its message handlers.
"""

import itertools

from textual.timer import Timer

from facile.scheduler import _check_positive


class TextualScheduler:
    """Host scheduler backed by App.set_interval / App.set_timer.

    Usage:
        class Clock(App):
            def on_mount(self):
                self.timers = TimerRegistry(TextualScheduler(self))
                self.timers.every(1000, self.refresh_time, name="clock")
    """

    def __init__(self, app) -> None:
        self._app = app
        self._ids = itertools.count(1)
        self._timers: dict[int, Timer] = {}

    def call_every(self, interval_ms: int, fn) -> int:
        _check_positive(interval_ms)
        handle = next(self._ids)
        self._timers[handle] = self._app.set_interval(
            interval_ms / 1000, fn, name=f"facile-every-{handle}"
        )
        return handle

    def call_after(self, delay_ms: int, fn) -> int:
        _check_positive(delay_ms)
        handle = next(self._ids)

        def _fire():
            self._timers.pop(handle, None)
            fn()

        self._timers[handle] = self._app.set_timer(
            delay_ms / 1000, _fire, name=f"facile-after-{handle}"
        )
        return handle

    def cancel_every(self, handle: int) -> None:
        self._cancel(handle)

    def cancel_after(self, handle: int) -> None:
        self._cancel(handle)

    def _cancel(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()

    def pending(self) -> int:
        return len(self._timers)
