"""Textual integration for tickwire. Opt-in — requires textual.

Supplies the flush boundary for a Textual app (flush runs after the message
currently being handled, via app.call_later) and guarded bindings that are
safe to point at widgets.

    tickwire.textual.install(app)
    tickwire.textual.bind(app, state, lambda s: f"{s.count} items",
                          lambda text: app.query_one("#count").update(text))
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from tickwire.expression import Expression
from tickwire.scheduler import set_boundary

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


def boundary(app):
    """Flush boundary that defers onto the app's message loop.

    Only the arming call is marshaled with call_from_thread when it happens on
    a worker thread. The write that triggered it has already touched the
    batcher there, and a Batcher is not thread-safe, so workers should send
    their writes through app.call_from_thread themselves.
    """
    _main = threading.get_ident()

    def _arm(flush):
        if threading.get_ident() != _main:
            return app.call_from_thread(app.call_later, flush)
        return app.call_later(flush)

    return _arm


def install(app) -> None:
    """Use app's message loop as the default batcher's flush boundary.

    Call from the app's thread, e.g. in on_mount.
    """
    set_boundary(boundary(app))


@contextmanager
def pause(app):
    """Suspend guarded observers during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def bind(app, scope, callable, observer) -> Expression:
    """Expression whose observer safely touches Textual widgets.

    The callable always runs, so dependencies stay tracked. The observer is
    skipped while the app is paused or not running, and NoMatches from widget
    queries is swallowed; any other error propagates.
    """

    def _guarded(value):
        if not is_safe(app):
            return
        try:
            observer(value)
        except NoMatches:
            pass

    return Expression(scope, callable, _guarded)
