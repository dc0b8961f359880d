"""Tests for tickwire.textual — Textual host integration."""

import threading

import pytest
from textual.css.query import NoMatches

from tickwire import Expression, get_batcher, track
from tickwire import textual as ttx


class _MockApp:
    """Minimal mock matching the Textual App interface ttx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._later = []
        self._call_from_thread_log = []

    def call_later(self, callback, *args):
        self._later.append((callback, args))
        return True

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        return fn(*args)

    def process_messages(self):
        later, self._later = self._later, []
        for callback, args in later:
            callback(*args)


class TestBoundary:
    def test_install_defers_to_call_later(self):
        app = _MockApp()
        ttx.install(app)
        state = track({"n": 1})
        out = []
        Expression(state, lambda s: s.n, out.append)

        state.n = 2
        state.n = 3
        assert out == [1]
        assert len(app._later) == 1

        app.process_messages()
        assert out == [1, 3]

    def test_arming_from_thread_is_marshaled(self):
        """Only the arming call is marshaled; the write itself runs on the worker."""
        app = _MockApp()
        ttx.install(app)
        state = track({"n": 1})
        out = []
        Expression(state, lambda s: s.n, out.append)

        def _bg():
            state.n = 2

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert len(app._call_from_thread_log) == 1
        app.process_messages()
        assert out == [1, 2]

    def test_boundary_runs_flush_on_message_loop(self):
        app = _MockApp()
        arm = ttx.boundary(app)
        flushed = []
        arm(lambda: flushed.append(True))
        app.process_messages()
        assert flushed == [True]

    def test_boundary_reports_call_later_result(self):
        app = _MockApp()
        assert ttx.boundary(app)(lambda: None) is True

    def test_refused_call_later_leaves_batcher_idle(self):
        app = _MockApp()
        app.call_later = lambda callback, *args: False
        ttx.install(app)
        state = track({"n": 1})
        Expression(state, lambda s: s.n, lambda v: None)
        state.n = 2
        assert not get_batcher().scheduled
        assert len(get_batcher()) == 1


class TestBind:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        state = track({"n": 1})
        effects = []
        ttx.bind(app, state, lambda s: s.n, effects.append)
        assert effects == []

    def test_still_tracks_when_skipped(self):
        app = _MockApp(is_running=False)
        state = track({"n": 1})
        effects = []
        ttx.bind(app, state, lambda s: s.n, effects.append)
        app.is_running = True
        state.n = 2
        get_batcher().flush()
        assert effects == [2]

    def test_skips_during_pause(self):
        app = _MockApp()
        state = track({"n": 1})
        effects = []
        ttx.bind(app, state, lambda s: s.n, effects.append)
        with ttx.pause(app):
            state.n = 2
            get_batcher().flush()
        assert effects == [1]

    def test_fires_when_safe(self):
        app = _MockApp()
        state = track({"n": 1})
        effects = []
        ttx.bind(app, state, lambda s: s.n, effects.append)
        state.n = 2
        get_batcher().flush()
        assert effects == [1, 2]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        state = track({"n": 1})

        def _raise_nomatch(v):
            raise NoMatches("StatusFooter")

        e = ttx.bind(app, state, lambda s: s.n, _raise_nomatch)
        state.n = 2
        get_batcher().flush()
        e.dispose()

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        state = track({"n": 1})

        def _raise_value_error(v):
            if v > 1:
                raise ValueError("boom")

        ttx.bind(app, state, lambda s: s.n, _raise_value_error)
        state.n = 2
        with pytest.raises(ValueError, match="boom"):
            get_batcher().flush()

    def test_dispose_stops_binding(self):
        app = _MockApp()
        state = track({"n": 1})
        effects = []
        e = ttx.bind(app, state, lambda s: s.n, effects.append)
        e.dispose()
        state.n = 3
        get_batcher().flush()
        assert effects == [1]


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert ttx.is_safe(app)

        with pytest.raises(RuntimeError):
            with ttx.pause(app):
                assert not ttx.is_safe(app)
                raise RuntimeError("oops")

        assert ttx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        app = _MockApp()
        attrs_before = set(vars(app))
        with ttx.pause(app):
            attrs_during = set(vars(app))
        assert attrs_before == attrs_during == set(vars(app))

    def test_multiple_apps_independent(self):
        app_a = _MockApp()
        app_b = _MockApp()
        with ttx.pause(app_a):
            assert not ttx.is_safe(app_a)
            assert ttx.is_safe(app_b)
