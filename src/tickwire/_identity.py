"""Identity registry — stable integer ids for live objects.

Ids come from one process-wide counter and are handed out lazily. The table
is keyed on id(), so two equal-but-distinct objects never share an identity.
It never owns a weak-referenceable object: a finalizer drops the entry when
the object is collected, so the id() can be recycled safely.
"""

from __future__ import annotations

import itertools
import weakref
from typing import Hashable, NamedTuple

# itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)

# id(obj) -> assigned identity
_identities: dict[int, int] = {}

# Objects that cannot be weakly referenced are kept alive here; otherwise
# their id() could be reused by a newer object and inherit a stale identity.
_pinned: dict[int, object] = {}


class StateKey(NamedTuple):
    """One observable slot: (owner identity, key)."""

    identity: int
    key: Hashable

    def __repr__(self) -> str:
        return f"StateKey({self.identity}.{self.key})"


def identity_of(obj: object) -> int:
    """Return obj's identity, assigning one on first request.

    Weak-referenceable objects are not kept alive by the registry. Objects that
    cannot be weakly referenced (int, str, dict, list, ...) are pinned for the
    life of the process instead, since a freed id() could otherwise hand their
    identity to a newer object. TrackedState wrappers are always weakly held.
    """
    address = id(obj)
    identity = _identities.get(address)
    if identity is not None:
        return identity

    identity = next(_id_counter)
    _identities[address] = identity
    try:
        weakref.finalize(obj, _identities.pop, address, None)
    except TypeError:
        _pinned[address] = obj
    return identity


def state_key(obj: object, key: Hashable) -> StateKey:
    return StateKey(identity_of(obj), key)
