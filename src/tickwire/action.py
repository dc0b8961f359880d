"""Actions and transactions — explicit units of external work.

Hosts without an event-loop boundary mark the end of each unit of work with
`with transaction()` or an @action handler. Writes inside only queue
expressions; the batcher is drained once, when the outermost scope exits.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from tickwire.scheduler import Batcher, get_batcher

P = ParamSpec("P")
R = TypeVar("R")

# Batch depth per batcher id. When > 0, exiting a scope doesn't drain.
_depth: dict[int, int] = {}


def begin_batch(batcher: Batcher) -> None:
    """Enter a unit of work. Nested scopes are supported."""
    _depth[id(batcher)] = _depth.get(id(batcher), 0) + 1


def end_batch(batcher: Batcher) -> None:
    """Exit a unit of work. The outermost exit drains the batcher."""
    depth = _depth.pop(id(batcher)) - 1
    if depth:
        _depth[id(batcher)] = depth
    else:
        batcher.flush()


@contextmanager
def transaction(batcher: Batcher | None = None) -> Iterator[Batcher]:
    """Context manager for one unit of work.

    Usage:
        with transaction():
            state.a = 1
            state.b = 2
            # expressions reading a and b update once, here
    """
    batcher = batcher if batcher is not None else get_batcher()
    begin_batch(batcher)
    try:
        yield batcher
    finally:
        end_batch(batcher)


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run fn as one unit of work on the default batcher.

    Usage:
        @action
        def on_click(event):
            state.count += 1
            state.last_click = event.timestamp
            # dependents of count and last_click update once, after return
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with transaction():
            return fn(*args, **kwargs)

    return wrapper
