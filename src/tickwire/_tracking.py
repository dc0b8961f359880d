"""Dependency recorder — which Expression is evaluating right now.

Uses a contextvar, so each thread and asyncio task sees its own slot.
Expression.evaluate() enters it through recording(), as does state.read() when
handed an explicit evaluator; everything else just queries active_expression().
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from tickwire.expression import Expression

# When set, any tracked read registers itself as a dependency of this expression.
_current_expression: contextvars.ContextVar[Expression | None] = contextvars.ContextVar(
    "current_expression", default=None
)


def active_expression() -> Expression | None:
    """The Expression currently evaluating, or None."""
    return _current_expression.get()


@contextmanager
def recording(expression: Expression) -> Iterator[Expression]:
    """Attribute tracked reads to expression for the duration of the block.

    The previous value is restored on every exit path, so a nested evaluation
    hands the slot back to its outer expression, and a failing one never leaves
    itself installed.
    """
    token = _current_expression.set(expression)
    try:
        yield expression
    finally:
        _current_expression.reset(token)
