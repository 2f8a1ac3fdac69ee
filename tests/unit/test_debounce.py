# =============================================================================
# tests/unit/test_debounce.py
# Unit Tests for the trailing-edge Debouncer
# =============================================================================

import time

from stock_core.offline import Debouncer


class TestDebouncer:

    def test_burst_collapses_into_one_call(self, wait):
        calls = []
        debouncer = Debouncer(0.15, lambda: calls.append(time.monotonic()))

        for _ in range(5):
            debouncer.trigger()
            time.sleep(0.02)

        assert wait(lambda: len(calls) == 1)
        time.sleep(0.3)
        assert len(calls) == 1
        assert not debouncer.pending

    def test_each_trigger_restarts_countdown(self, wait):
        calls = []
        debouncer = Debouncer(0.2, lambda: calls.append(1))

        start = time.monotonic()
        debouncer.trigger()
        time.sleep(0.12)
        debouncer.trigger()
        assert wait(lambda: calls)

        # fired no earlier than one full delay after the last trigger
        assert time.monotonic() - start >= 0.3

    def test_cancel_drops_pending_call(self):
        calls = []
        debouncer = Debouncer(0.1, lambda: calls.append(1))
        debouncer.trigger()

        assert debouncer.pending
        assert debouncer.cancel() is True
        assert debouncer.cancel() is False

        time.sleep(0.25)
        assert calls == []

    def test_flush_runs_now(self):
        calls = []
        debouncer = Debouncer(10, lambda: calls.append(1))
        debouncer.trigger()

        assert debouncer.flush() is True
        assert calls == [1]
        assert debouncer.flush() is False

    def test_failing_action_is_logged_not_raised(self, caplog):
        def boom():
            raise RuntimeError("push failed")

        debouncer = Debouncer(10, boom, name="TestDebounce")
        debouncer.trigger()

        assert debouncer.flush() is True
        assert "TestDebounce action failed" in caplog.text
