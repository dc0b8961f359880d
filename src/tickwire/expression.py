"""Expressions — computed bindings that re-run when the state they read changes.

An Expression is (scope, callable, observer). Evaluating it calls
callable(scope) with the recorder pointed at the expression, so every tracked
read lands in depends_on. The result goes to observer. When one of those
reads is later written, the owning TrackedState hands the expression to the
batcher, which calls update() again at the next flush.

    state = track({"count": 0})
    out = []
    bind(state, lambda s: s.count * 2, out.append)
    # out == [0]

    state.count = 5
    drain_pending()
    # out == [0, 10]
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from tickwire._identity import StateKey
from tickwire._tracking import recording

if TYPE_CHECKING:
    from tickwire.state import TrackedState

T = TypeVar("T")


class Expression(Generic[T]):
    """A computed value bound to a scope, delivered to an observer.

    The observer runs once synchronously on construction, then once per flush
    that finds the expression pending.
    """

    __slots__ = (
        "scope",
        "callable",
        "observer",
        "depends_on",
        "_sources",
        "_running",
        "_disposed",
        "__weakref__",
    )

    def __init__(
        self,
        scope: Any,
        callable: Callable[[Any], T],
        observer: Callable[[T], None],
    ) -> None:
        self.scope = scope
        self.callable = callable
        self.observer = observer
        self.depends_on: set[StateKey] = set()
        # Every TrackedState that ever indexed us, so dispose() can find stale edges too.
        self._sources: weakref.WeakSet[TrackedState] = weakref.WeakSet()
        self._running = False
        self._disposed = False
        self.update()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def evaluate(self) -> T:
        """Run the callable against scope, re-recording dependencies."""
        if self._running:
            raise RuntimeError(
                f"{self!r} re-entered its own evaluation; "
                "schedule the rerun through the batcher instead"
            )
        self._running = True
        try:
            with recording(self):
                self.depends_on = set()
                return self.callable(self.scope)
        finally:
            self._running = False

    def update(self) -> None:
        """Evaluate and feed the result to the observer."""
        if self._disposed:
            return
        value = self.evaluate()
        self._running = True
        try:
            self.observer(value)
        finally:
            self._running = False

    def dispose(self) -> None:
        """Stop this expression and remove it from every dependency index."""
        if self._disposed:
            return
        self._disposed = True
        self.depends_on = set()
        for source in list(self._sources):
            source._tw_forget(self)
        self._sources.clear()

    def _track(self, source: TrackedState, key: StateKey) -> None:
        """Called by TrackedState on a recorded read."""
        self.depends_on.add(key)
        self._sources.add(source)

    def __repr__(self) -> str:
        name = getattr(self.callable, "__name__", type(self.callable).__name__)
        state = "disposed" if self._disposed else f"{len(self.depends_on)} deps"
        return f"Expression({name}, {state})"


def bind(
    scope: Any,
    callable: Callable[[Any], T] | None = None,
    observer: Callable[[T], None] | None = None,
):
    """Create an Expression, or a decorator that creates one over its callable.

    Usage:
        bind(state, lambda s: s.title.upper(), label.update)

        @bind(state, observer=label.update)
        def title(s):
            return s.title.upper()
        # title is the Expression
    """
    if observer is None:
        raise TypeError("bind() requires an observer")
    if callable is None:

        def decorator(fn: Callable[[Any], T]) -> Expression[T]:
            return Expression(scope, fn, observer)

        return decorator
    return Expression(scope, callable, observer)
