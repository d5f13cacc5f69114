"""Tests for TypingIndicator."""

from unittest.mock import MagicMock

from ccc.models.state import AgentState
from ccc.services.typing_service import TypingIndicator


def make_indicator(read_state, max_duration=5.0):
    notifier = MagicMock()
    indicator = TypingIndicator(
        notifier,
        read_state,
        check_interval=0.01,
        signal_interval=0.01,
        max_duration=max_duration,
    )
    return indicator, notifier


class TestTypingIndicator:
    """Tests for the typing side-channel."""

    def test_stops_after_two_idle_readings(self):
        """The indicator ends on its own once the agent settles."""
        indicator, notifier = make_indicator(lambda name: AgentState.IDLE)

        thread = indicator.start("proj", 42)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert indicator.is_active("proj") is False
        notifier.send_typing.assert_called_with(42)

    def test_signals_while_busy_until_stopped(self):
        """A busy agent keeps the indicator running until stop()."""
        indicator, notifier = make_indicator(lambda name: AgentState.BUSY)

        thread = indicator.start("proj", 42)
        assert indicator.is_active("proj") is True

        indicator.stop("proj")
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert notifier.send_typing.call_count >= 1

    def test_max_duration(self):
        """The indicator gives up at its time limit."""
        indicator, _ = make_indicator(lambda name: AgentState.BUSY, max_duration=0.05)

        thread = indicator.start("proj", 42)
        thread.join(timeout=5)

        assert not thread.is_alive()

    def test_restart_replaces_previous(self):
        """Starting again cancels the earlier worker for the session."""
        indicator, _ = make_indicator(lambda name: AgentState.BUSY)

        first = indicator.start("proj", 42)
        second = indicator.start("proj", 42)
        first.join(timeout=5)

        assert not first.is_alive()
        assert indicator.is_active("proj") is True

        indicator.stop("proj")
        second.join(timeout=5)
        assert not second.is_alive()

    def test_read_state_error_ends_worker(self):
        """A failing state read is logged and the worker exits."""

        def read_state(name):
            raise RuntimeError("boom")

        indicator, _ = make_indicator(read_state)

        thread = indicator.start("proj", 42)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert indicator.is_active("proj") is False

    def test_stop_unknown_session(self):
        """Stopping a session with no indicator is a no-op."""
        indicator, _ = make_indicator(lambda name: AgentState.IDLE)
        indicator.stop("nope")
