"""Reported conditions — warnings that travel a side channel, never a raise.

None of these are raised by facile's own operations. They are built and handed
to a Reporter (any callable taking one FacileWarning). The default reporter
logs them; tests and applications can pass their own to collect or escalate.
"""

from __future__ import annotations

import logging
from typing import Any, Callable


class FacileWarning(Warning):
    """Base for every condition facile reports."""

    #: Logger (under "facile") the default reporter writes to.
    channel = "facile"


class InvalidInterval(FacileWarning):
    """An interval or delay normalized to zero or less."""

    channel = "facile.timers"

    def __init__(self, value: Any, normalized: int | None) -> None:
        super().__init__(
            f"Failed to create timer: interval {value!r} normalizes to "
            f"{normalized!r}, must be greater than 0."
        )
        self.value = value
        self.normalized = normalized


class TimerNotFound(FacileWarning):
    """stop() was given a handle or name with no live timer."""

    channel = "facile.timers"

    def __init__(self, identifier: int | str) -> None:
        super().__init__(f"Failed to stop a timer: no timer found for {identifier!r}.")
        self.identifier = identifier


class ListenerFailure(FacileWarning):
    """A change listener raised while being notified."""

    channel = "facile.state"

    def __init__(
        self,
        listener: Callable,
        error: BaseException,
        value: Any,
        previous: Any,
    ) -> None:
        name = getattr(listener, "__qualname__", repr(listener))
        super().__init__(f"Listener {name} failed on state change: {error!r}")
        self.listener = listener
        self.error = error
        self.value = value
        self.previous = previous


Reporter = Callable[[FacileWarning], None]


def log_report(condition: FacileWarning) -> None:
    """Default reporter: write the condition to its logger.

    Listener failures go out at ERROR with the original traceback; everything
    else is a WARNING.
    """
    log = logging.getLogger(condition.channel)
    if isinstance(condition, ListenerFailure):
        error = condition.error
        log.error("%s", condition, exc_info=(type(error), error, error.__traceback__))
    else:
        log.warning("%s", condition)
