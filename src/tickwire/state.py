"""Tracked state — ordinary attribute/item syntax that reports reads and writes.

TrackedState wraps a mapping or a plain object. Reads made while an Expression
is evaluating become dependency edges (StateKey -> Expression). Writes and
deletes notify every expression whose latest evaluation read that key; edges
left over from older evaluations are dropped when found.

    state = track({"a": 1, "b": 1})
    state.a            # tracked read (same slot as state["a"])
    state.a = 2        # notifies expressions that read "a"
    "a" in state       # untracked existence check
    list(state)        # tracked read of the key set (KEYS)
    state.c = 3        # new key: notifies "c" and KEYS

Subclass Reactive to get instances back already wrapped:

    class Counter(Reactive):
        def __init__(self):
            self.count = 0

        def increment(self):
            self.count += 1   # self is the wrapper, so this is tracked too
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from types import FunctionType, MethodType
from typing import TYPE_CHECKING, Any, Hashable

from tickwire._identity import StateKey, identity_of
from tickwire._tracking import active_expression, recording
from tickwire.scheduler import Batcher, get_batcher

if TYPE_CHECKING:
    from tickwire.expression import Expression

logger = logging.getLogger("tickwire.state")

_MISSING = object()


class _KeySet:
    __slots__ = ()

    def __repr__(self) -> str:
        return "KEYS"


# Slot standing for a mapping's key set. Iteration, len() and bool() read it;
# adding or deleting a key writes it.
KEYS = _KeySet()

# Read-only Mapping methods reachable by attribute when no key has that name.
_MAPPING_READS = {
    "get": "_tw_get",
    "keys": "_tw_keys",
    "values": "_tw_values",
    "items": "_tw_items",
}


def _is_dunder(key: Hashable) -> bool:
    return isinstance(key, str) and key.startswith("__") and key.endswith("__")


class TrackedState:
    """Interception layer around one TrackedObject."""

    # Prefixed so they don't shadow the target's own attributes.
    __slots__ = ("_tw_target", "_tw_index", "_tw_batcher", "__weakref__")

    def __init__(self, target: Any, *, batcher: Batcher | None = None) -> None:
        object.__setattr__(self, "_tw_target", target)
        # key -> expressions that read it (dict as an insertion-ordered set)
        object.__setattr__(self, "_tw_index", {})
        object.__setattr__(self, "_tw_batcher", batcher)

    # --- Instrumentation ---

    def _tw_key(self, key: Hashable) -> StateKey:
        return StateKey(identity_of(self), key)

    def _tw_record(self, key: Hashable, evaluator: Expression | None = None) -> None:
        """Register the read of key against evaluator (default: the active one)."""
        if evaluator is None:
            evaluator = active_expression()
        if evaluator is None or _is_dunder(key):
            return
        self._tw_index.setdefault(key, {})[evaluator] = None
        evaluator._track(self, self._tw_key(key))

    def _tw_notify(self, key: Hashable) -> None:
        """Schedule every expression whose latest evaluation read key."""
        readers = self._tw_index.get(key)
        if not readers:
            return
        state_key = self._tw_key(key)
        batcher = self._tw_batcher if self._tw_batcher is not None else get_batcher()
        for expression in list(readers):
            if not expression.disposed and state_key in expression.depends_on:
                batcher.notify(expression)
            else:
                logger.debug("Pruning stale edge %r -> %r", state_key, expression)
                del readers[expression]
        if not readers:
            del self._tw_index[key]

    def _tw_forget(self, expression: Expression) -> None:
        """Remove expression from every edge set. Called by Expression.dispose()."""
        for key in list(self._tw_index):
            readers = self._tw_index[key]
            readers.pop(expression, None)
            if not readers:
                del self._tw_index[key]

    def _tw_lookup(self, name: str) -> Any:
        """Resolve an attribute the way __getattr__ does, without recording it."""
        target = self._tw_target
        if isinstance(target, Mapping):
            try:
                return target[name]
            except KeyError:
                if name in _MAPPING_READS:
                    return getattr(self, _MAPPING_READS[name])
                raise AttributeError(name) from None

        attr = inspect.getattr_static(type(target), name, _MISSING)
        if isinstance(attr, FunctionType) and name not in getattr(target, "__dict__", ()):
            return MethodType(attr, self)
        if isinstance(attr, property) and attr.fget is not None:
            return attr.fget(self)
        return getattr(target, name)

    def _tw_store(self, key: Hashable, value: Any) -> None:
        """Write a mapping key, notifying KEYS too when the key is new."""
        target = self._tw_target
        added = key not in target
        target[key] = value
        self._tw_notify(key)
        if added:
            self._tw_notify(KEYS)

    def _tw_remove(self, key: Hashable) -> None:
        del self._tw_target[key]
        self._tw_notify(key)
        self._tw_notify(KEYS)

    # --- Mapping reads ---

    def _tw_get(self, key: Hashable, default: Any = None) -> Any:
        self._tw_record(key)
        return self._tw_target.get(key, default)

    def _tw_keys(self) -> list:
        self._tw_record(KEYS)
        return list(self._tw_target)

    def _tw_values(self) -> list:
        return [value for _, value in self._tw_items()]

    def _tw_items(self) -> list:
        self._tw_record(KEYS)
        return [(key, self[key]) for key in list(self._tw_target)]

    # --- Attribute protocol ---

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that aren't slots or methods of the wrapper.
        self._tw_record(name)
        return self._tw_lookup(name)

    def __setattr__(self, name: str, value: Any) -> None:
        target = self._tw_target
        if isinstance(target, Mapping):
            self._tw_store(name, value)
            return
        attr = inspect.getattr_static(type(target), name, _MISSING)
        if isinstance(attr, property) and attr.fset is not None:
            attr.fset(self, value)
        else:
            setattr(target, name, value)
        self._tw_notify(name)

    def __delattr__(self, name: str) -> None:
        target = self._tw_target
        if isinstance(target, Mapping):
            if name not in target:
                raise AttributeError(name)
            self._tw_remove(name)
            return
        delattr(target, name)
        self._tw_notify(name)

    # --- Item protocol ---

    def __getitem__(self, key: Hashable) -> Any:
        self._tw_record(key)
        return self._tw_target[key]

    def __setitem__(self, key: Hashable, value: Any) -> None:
        if isinstance(self._tw_target, Mapping):
            self._tw_store(key, value)
            return
        self._tw_target[key] = value
        self._tw_notify(key)

    def __delitem__(self, key: Hashable) -> None:
        if isinstance(self._tw_target, Mapping):
            self._tw_remove(key)
            return
        del self._tw_target[key]
        self._tw_notify(key)

    def __contains__(self, key: Hashable) -> bool:
        return has(self, key)

    # --- Container protocol ---
    # Mapping targets track these as a read of KEYS; other targets just forward.

    def __iter__(self):
        if isinstance(self._tw_target, Mapping):
            return iter(self._tw_keys())
        return iter(self._tw_target)

    def __len__(self) -> int:
        if isinstance(self._tw_target, Mapping):
            self._tw_record(KEYS)
        return len(self._tw_target)

    def __bool__(self) -> bool:
        if isinstance(self._tw_target, Mapping):
            self._tw_record(KEYS)
        return bool(self._tw_target)

    def __repr__(self) -> str:
        return f"TrackedState({self._tw_target!r})"


def track(obj: Any, *, batcher: Batcher | None = None) -> TrackedState:
    """Wrap obj for tracking. Wrapping a wrapper returns it unchanged."""
    if isinstance(obj, TrackedState):
        return obj
    return TrackedState(obj, batcher=batcher)


def unwrap(state: Any) -> Any:
    """The object behind a TrackedState (anything else is returned as is)."""
    if isinstance(state, TrackedState):
        return object.__getattribute__(state, "_tw_target")
    return state


def is_tracked(obj: Any) -> bool:
    return isinstance(obj, TrackedState)


def read(state: TrackedState, key: Hashable, evaluator: Expression | None = None) -> Any:
    """Tracked read attributed to evaluator instead of the ambient recorder.

    Lets a caller that already holds the evaluating Expression pass it in
    explicitly. Mapping targets are read by key, other objects by attribute,
    resolved like state.key, so reads made inside a property or method land
    on evaluator as well.
    """
    target = unwrap(state)
    state._tw_record(key, evaluator)
    if isinstance(target, Mapping):
        return target[key]
    if evaluator is None:
        return state._tw_lookup(key)
    with recording(evaluator):
        return state._tw_lookup(key)


def has(state: TrackedState, key: Hashable) -> bool:
    """Existence check that records no dependency."""
    target = unwrap(state)
    if isinstance(target, Mapping):
        return key in target
    return hasattr(target, key)


class _ReactiveMeta(type):
    def __call__(cls, *args, **kwargs):
        return TrackedState(super().__call__(*args, **kwargs))


class Reactive(metaclass=_ReactiveMeta):
    """Base class whose instances come back wrapped in TrackedState.

    __init__ runs on the plain instance; every method called afterwards gets
    the wrapper as self.
    """
