"""facile: observable values and named timers for Python."""

from importlib.metadata import version as _version

__version__ = _version("facile")

from facile.errors import (
    FacileWarning,
    InvalidInterval,
    ListenerFailure,
    Reporter,
    TimerNotFound,
    log_report,
)
from facile.state import ABSENT, State, state
from facile.scheduler import AsyncioScheduler, HostScheduler, ManualScheduler, ThreadScheduler
from facile.timers import (
    FAILED,
    TimerEntry,
    TimerKind,
    TimerRegistry,
    after,
    default_registry,
    every,
    set_default_registry,
    stop,
)
# textual NOT auto-imported — opt-in only

__all__ = [
    "ABSENT",
    "State",
    "state",
    "FAILED",
    "TimerEntry",
    "TimerKind",
    "TimerRegistry",
    "every",
    "after",
    "stop",
    "default_registry",
    "set_default_registry",
    "HostScheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "ThreadScheduler",
    "FacileWarning",
    "InvalidInterval",
    "TimerNotFound",
    "ListenerFailure",
    "Reporter",
    "log_report",
]
