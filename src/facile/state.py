"""Observable values — a single slot that notifies listeners on each real change.

A State holds one value and an ordered list of listeners. set() with a value
strictly equal to the current one does nothing (scalars such as numbers and
strings compare by value, every other object by identity); any other write stores the
value and calls every listener, in registration order, with (value, previous).

Listeners run synchronously inside set(). A listener that raises is reported
through the State's reporter and the remaining listeners still run.

Listeners cannot be removed once added: a listener fires for the whole
lifetime of the State.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from facile.errors import ListenerFailure, Reporter, log_report

T = TypeVar("T")


class _Absent:
    """Type of ABSENT. Only one instance exists."""

    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Absent, ())


#: Value of a State that was created without one. Distinct from None.
ABSENT: Any = _Absent()

ChangeListener = Callable[[T, Any], None]


# Compared by value. Everything else is compared by identity.
_SCALARS = (int, float, complex, str, bytes, bool, type(None))


def _strict_equal(a: object, b: object) -> bool:
    # Same type keeps 1, 1.0 and True apart.
    if a is b:
        return True
    return type(a) is type(b) and type(a) in _SCALARS and a == b


class State(Generic[T]):
    """A watched variable.

    Usage:
        score = State(0)
        score.on_change(lambda new, old: print(f"{old} -> {new}"))
        score.set(100)      # prints "0 -> 100"
        score.value = 100   # same value, nothing printed
    """

    __slots__ = ("_value", "_listeners", "_report")

    def __init__(self, value: T = ABSENT, *, report: Reporter = log_report) -> None:
        self._value = value
        self._listeners: list[ChangeListener] = []
        self._report = report

    def get(self) -> T:
        """Current value, or ABSENT."""
        return self._value

    def set(self, value: T) -> None:
        """Store value and notify listeners, unless it equals the current value."""
        if _strict_equal(self._value, value):
            return

        previous = self._value
        self._value = value
        # Snapshot: listeners added during dispatch wait for the next change.
        for listener in tuple(self._listeners):
            try:
                listener(value, previous)
            except Exception as error:
                self._report(ListenerFailure(listener, error, value, previous))

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, value: T) -> None:
        self.set(value)

    def is_absent(self) -> bool:
        return self._value is ABSENT

    def on_change(self, listener: ChangeListener) -> ChangeListener:
        """Call listener(value, previous) after every change.

        Returns the listener, so it also works as a decorator:

            @score.on_change
            def show(new, old):
                ...
        """
        self._listeners.append(listener)
        return listener

    def __repr__(self) -> str:
        return f"State({self._value!r})"


def state(value: T = ABSENT, *, report: Reporter = log_report) -> State[T]:
    """Create a State.

    Usage:
        score = state(0)
        score.on_change(lambda new, old: print("Score updated:", new))
        score.value = 100
    """
    return State(value, report=report)
