"""Tests for StateInterpreter."""

from unittest.mock import MagicMock, patch

import pytest
from fakes import BUSY_PANE, IDLE_PANE, SHELL_PANE, FakeBackend, FakeClock

from ccc.models.state import AgentState
from ccc.services.state_interpreter import (
    CLASSIFY_LINES,
    PROBE_TIMEOUT,
    RUNNING_LINES,
    StateInterpreter,
    classify,
    is_running,
)


@pytest.fixture
def interpreter():
    return StateInterpreter()


class TestClassify:
    """Tests for idle/busy classification of a capture."""

    def test_idle_prompt_with_status_bar(self, interpreter):
        """Empty prompt followed by separator and status bar is idle."""
        assert interpreter.classify(IDLE_PANE) == AgentState.IDLE

    def test_busy_marker_after_prompt(self, interpreter):
        """An interrupt hint below the prompt is busy."""
        assert interpreter.classify(BUSY_PANE) == AgentState.BUSY

    @pytest.mark.parametrize(
        "marker",
        ["✽ Working", "✻ Baking", "Running… 3 tools", "Thinking…", "esc to interrupt"],
    )
    def test_each_busy_marker(self, interpreter, marker):
        """Every activity marker is recognized below the prompt."""
        assert interpreter.classify(f"done\n❯\n{marker}") == AgentState.BUSY

    def test_no_prompt_is_unknown(self, interpreter):
        """Without a prompt line there is not enough signal."""
        assert interpreter.classify(SHELL_PANE) == AgentState.UNKNOWN
        assert interpreter.classify("") == AgentState.UNKNOWN

    def test_prompt_with_typed_text_is_not_a_prompt_line(self, interpreter):
        """A prompt line with text on it does not count as the input prompt."""
        assert interpreter.classify("❯ hello\nThinking…") == AgentState.UNKNOWN

    def test_busy_marker_above_prompt_ignored(self, interpreter):
        """Markers left in scrollback above the prompt do not count."""
        pane = "✻ Baked for 3s (ctrl+c to interrupt)\n● Done\n❯ \n─────"
        assert interpreter.classify(pane) == AgentState.IDLE

    def test_uses_last_prompt(self, interpreter):
        """Only content below the latest prompt line is considered."""
        pane = "❯\n✻ Thinking…\n● Done\n❯\n"
        assert interpreter.classify(pane) == AgentState.IDLE

    def test_ascii_prompt(self, interpreter):
        """A bare > line is also a prompt."""
        assert interpreter.classify("output\n>\n") == AgentState.IDLE

    def test_module_helper(self):
        """Module-level classify uses a shared interpreter."""
        assert classify(IDLE_PANE) == AgentState.IDLE


class TestIsRunning:
    """Tests for liveness detection."""

    def test_agent_ui_visible(self, interpreter):
        """The prompt glyph means the agent UI is up."""
        assert interpreter.is_running(IDLE_PANE) is True

    def test_bare_shell(self, interpreter):
        """A shell prompt alone means the agent exited."""
        assert interpreter.is_running(SHELL_PANE) is False

    def test_tool_output_marker(self):
        """Tool output glyphs count as the agent UI."""
        assert is_running("  ⎿  Read 20 lines") is True


class TestProbe:
    """Tests for probing a live session through a backend."""

    def test_absent_session(self, interpreter):
        """A missing tmux session is absent."""
        assert interpreter.probe(FakeBackend(), "claude-x") == AgentState.ABSENT

    def test_capture_failure_is_unknown(self, interpreter):
        """Capture errors degrade to unknown."""
        backend = FakeBackend()
        backend.add_session("claude-x")
        backend.fail_capture = True
        assert interpreter.probe(backend, "claude-x") == AgentState.UNKNOWN

    def test_probe_captures_classify_window(self, interpreter):
        """Classification reads the short tail window."""
        backend = FakeBackend()
        backend.add_session("claude-x", BUSY_PANE)

        assert interpreter.probe(backend, "claude-x") == AgentState.BUSY
        assert ("capture", "claude-x", CLASSIFY_LINES) in backend.calls

    def test_round_trips_share_one_deadline(self, interpreter):
        """A slow existence check leaves the capture only the rest of the budget."""
        clock = FakeClock(start=100.0)
        backend = MagicMock()
        backend.session_exists.side_effect = lambda name, timeout: clock.sleep(2) or True
        backend.capture_pane.return_value = IDLE_PANE

        with patch("ccc.services.state_interpreter.time.monotonic", clock):
            assert interpreter.probe(backend, "claude-x") == AgentState.IDLE

        assert backend.session_exists.call_args.kwargs["timeout"] == PROBE_TIMEOUT
        assert backend.capture_pane.call_args.kwargs["timeout"] == PROBE_TIMEOUT - 2

    def test_deadline_spent_before_capture(self, interpreter):
        clock = FakeClock(start=100.0)
        backend = MagicMock()
        backend.session_exists.side_effect = lambda name, timeout: clock.sleep(PROBE_TIMEOUT) or True

        with patch("ccc.services.state_interpreter.time.monotonic", clock):
            assert interpreter.probe(backend, "claude-x") == AgentState.UNKNOWN

        backend.capture_pane.assert_not_called()

    def test_check_running(self, interpreter):
        """Liveness reads the wider window and fails closed."""
        backend = FakeBackend()
        backend.add_session("claude-x", SHELL_PANE)

        assert interpreter.check_running(backend, "claude-x") is False
        assert ("capture", "claude-x", RUNNING_LINES) in backend.calls

        backend.fail_capture = True
        assert interpreter.check_running(backend, "claude-x") is False
