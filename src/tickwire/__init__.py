"""tickwire: dependency-tracked expressions with batched, coalesced updates."""

from importlib.metadata import version as _version

__version__ = _version("tickwire")

from tickwire._identity import StateKey, identity_of
from tickwire._tracking import active_expression
from tickwire.scheduler import (
    Batcher,
    asyncio_boundary,
    auto_boundary,
    drain_pending,
    get_batcher,
    get_pending_count,
    set_boundary,
)
from tickwire.expression import Expression, bind
from tickwire.state import KEYS, Reactive, TrackedState, has, is_tracked, read, track, unwrap
from tickwire.action import action, transaction
# textual NOT auto-imported — opt-in only

__all__ = [
    "StateKey",
    "identity_of",
    "active_expression",
    "Batcher",
    "asyncio_boundary",
    "auto_boundary",
    "drain_pending",
    "get_batcher",
    "get_pending_count",
    "set_boundary",
    "Expression",
    "bind",
    "KEYS",
    "Reactive",
    "TrackedState",
    "has",
    "is_tracked",
    "read",
    "track",
    "unwrap",
    "action",
    "transaction",
]
