"""Batching scheduler — coalesce invalidated expressions, flush them once.

Invalidated expressions collect in an insertion-ordered pending set. The first
notify() after idle arms a one-shot flush on the configured boundary; any
further invalidations in the same tick just join the set. flush() drains the
set one expression at a time until it is empty, so cascading writes made by
observers are settled before flush() returns.

A boundary is any callable that takes flush and arranges for it to run once,
after the current synchronous work. Returning False means nothing was
armed; the batcher stays idle and tries again on the next notify():

    set_boundary(asyncio_boundary)       # loop.call_soon on the running loop
    set_boundary(None)                   # manual: call drain_pending() yourself
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from tickwire.expression import Expression

logger = logging.getLogger("tickwire.scheduler")

Boundary = Callable[[Callable[[], None]], object]


def asyncio_boundary(flush: Callable[[], None]) -> None:
    """Run flush on the running event loop's next callback turn."""
    asyncio.get_running_loop().call_soon(flush)


def auto_boundary(flush: Callable[[], None]) -> bool:
    """asyncio_boundary when a loop is running in this thread, else manual."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running event loop; flush waits for drain_pending()")
        return False
    loop.call_soon(flush)
    return True


class Batcher:
    """Deduplicating pending set plus the Idle/Scheduled flush state machine."""

    def __init__(self, boundary: Boundary | None = None) -> None:
        self._pending: dict[Expression, None] = {}
        self._boundary = boundary
        self._scheduled = False
        self._flushing = False

    @property
    def boundary(self) -> Boundary | None:
        return self._boundary

    @boundary.setter
    def boundary(self, boundary: Boundary | None) -> None:
        self._boundary = boundary

    @property
    def scheduled(self) -> bool:
        """True from an armed notify() until the flush that drains it."""
        return self._scheduled

    def __len__(self) -> int:
        return len(self._pending)

    def notify(self, expression: Expression) -> None:
        """Queue expression for the next flush. Duplicates are no-ops."""
        self._pending[expression] = None
        if not self._scheduled and not self._flushing:
            self._arm()

    def _arm(self) -> None:
        if self._boundary is None:
            # Manual: the pending set waits for an explicit flush().
            self._scheduled = True
            return
        logger.debug("Arming flush on %r", self._boundary)
        self._scheduled = self._boundary(self.flush) is not False

    def flush(self) -> None:
        """Update every pending expression, including ones queued mid-flush.

        One failing update does not stall the rest: failures are collected and
        re-raised once the set is empty (a lone failure as itself, several as
        an ExceptionGroup).
        """
        if self._flushing:
            # Nested call from inside an update; the outer drain picks up new entries.
            return
        self._flushing = True
        errors: list[Exception] = []
        updated = 0
        try:
            while self._pending:
                expression = next(iter(self._pending))
                del self._pending[expression]
                updated += 1
                try:
                    expression.update()
                except Exception as exc:
                    logger.debug("Update of %r failed", expression, exc_info=True)
                    errors.append(exc)
        finally:
            self._flushing = False
            self._scheduled = False
            if self._pending:
                # Interrupted by a BaseException; keep the leftovers armed.
                self._arm()

        logger.debug("Flushed %d expression updates", updated)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup(f"{len(errors)} expression updates failed during flush", errors)

    def clear(self) -> None:
        """Drop everything pending and return to idle without updating."""
        self._pending.clear()
        self._scheduled = False

    def __repr__(self) -> str:
        state = "scheduled" if self._scheduled else "idle"
        return f"Batcher({state}, {len(self._pending)} pending)"


_default = Batcher(auto_boundary)


def get_batcher() -> Batcher:
    """The process-wide batcher used by wrappers that were not given one."""
    return _default


def set_boundary(boundary: Boundary | None) -> None:
    """Set the default batcher's flush boundary.

    Call once from the host's setup code:
        tickwire.set_boundary(tickwire.asyncio_boundary)
    """
    _default.boundary = boundary


def drain_pending() -> None:
    """Flush the default batcher now. Call at the end of each unit of external work."""
    _default.flush()


def get_pending_count() -> int:
    """Number of expressions waiting to run. Useful for testing."""
    return len(_default)
