"""Tests for the cancellation composer."""

from __future__ import annotations

from fetchguard.cancellation.composer import any_signal, compose
from fetchguard.cancellation.signal import AbortController
from fetchguard.shared.types import AbortSource


class TestCompose:
    def test_pending_until_an_input_fires(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        handle = AbortController()
        timeout = AbortController(AbortSource.TIMEOUT)
        effective = compose(caller.signal, timeout.signal, handle)
        assert not effective.aborted
        assert not effective.timeout_fired

    def test_handle_fires(self) -> None:
        handle = AbortController()
        effective = compose(None, None, handle)
        handle.abort("user")
        assert effective.aborted
        assert effective.fired_source is AbortSource.HANDLE
        assert effective.reason == "user"
        assert not effective.timeout_fired

    def test_caller_fires(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        effective = compose(caller.signal, None, AbortController())
        caller.abort()
        assert effective.fired_source is AbortSource.CALLER

    def test_timeout_fires(self) -> None:
        timeout = AbortController(AbortSource.TIMEOUT)
        effective = compose(None, timeout.signal, AbortController())
        timeout.abort()
        assert effective.timeout_fired
        assert effective.fired_source is AbortSource.TIMEOUT

    def test_first_input_wins(self) -> None:
        handle = AbortController()
        timeout = AbortController(AbortSource.TIMEOUT)
        effective = compose(None, timeout.signal, handle)
        timeout.abort()
        handle.abort()
        assert effective.fired_source is AbortSource.TIMEOUT

    def test_born_aborted_prefers_caller(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        handle = AbortController()
        caller.abort("early")
        handle.abort()
        effective = compose(caller.signal, None, handle)
        assert effective.aborted
        assert effective.fired_source is AbortSource.CALLER
        assert effective.reason == "early"
        assert caller.signal.listener_count == 0


class TestClose:
    def test_close_detaches_listeners(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        handle = AbortController()
        effective = compose(caller.signal, None, handle)
        assert caller.signal.listener_count == 1
        effective.close()
        effective.close()
        assert effective.closed
        assert caller.signal.listener_count == 0
        assert handle.signal.listener_count == 0
        caller.abort()
        assert not effective.aborted

    def test_context_manager_closes(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        with compose(caller.signal, None, AbortController()) as effective:
            assert caller.signal.listener_count == 1
        assert effective.closed
        assert caller.signal.listener_count == 0

    def test_firing_detaches_other_inputs(self) -> None:
        caller = AbortController(AbortSource.CALLER)
        handle = AbortController()
        compose(caller.signal, None, handle)
        handle.abort()
        assert caller.signal.listener_count == 0


class TestAnySignal:
    def test_tags_by_input_source(self) -> None:
        a = AbortController(AbortSource.CALLER)
        b = AbortController(AbortSource.TIMEOUT)
        combined = any_signal([a.signal, b.signal])
        b.abort()
        assert combined.fired_source is AbortSource.TIMEOUT
