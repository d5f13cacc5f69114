"""Tests for response extraction from pane captures."""

import pytest
from fakes import IDLE_PANE, FakeBackend

from ccc.services.response_extractor import (
    CAPTURE_SIZES,
    extract_response,
    filter_artifacts,
    is_echo,
    is_ui_artifact,
    parse_response,
)


class TestIsUiArtifact:
    """Tests for UI chrome detection."""

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "────────────",
            "● Bash(npm test)",
            "● Update(src/app.py)",
            "● Read 3 files (ctrl+o to expand)",
            "● Searched for 2 patterns",
            "  ⎿  Wrote 10 lines to app.py",
            "       … +12 lines (ctrl+o to expand)",
            "✶ Scheming…",
            "✢ Pondering…",
            "· Thinking…",
            "* Working",
            "⏵⏵ accept edits on",
            "Brewed for 1m 19s",
            "Cogitated for 42s",
            "  esc to interrupt · ctrl+c to interrupt",
            "  bypass permissions on",
            "(timeout 2m)",
            "(No content)",
        ],
    )
    def test_artifacts(self, line):
        """Tool calls, spinners, separators and status lines are chrome."""
        assert is_ui_artifact(line) is True

    @pytest.mark.parametrize(
        "line",
        [
            "● The tests pass now.",
            "● Done",
            "Here is the summary:",
            "  - first point",
            "Brewed coffee is better for you",
        ],
    )
    def test_prose(self, line):
        """Prose, including prose bullets, is kept."""
        assert is_ui_artifact(line) is False

    def test_filter_is_idempotent(self):
        """Filtering twice gives the same result as once."""
        lines = IDLE_PANE.split("\n")
        once = filter_artifacts(lines)
        assert filter_artifacts(once) == once


class TestIsEcho:
    """Tests for echo detection."""

    def test_exact_echo(self):
        assert is_echo("run the tests", "run the tests") is True

    def test_wrapped_tail_of_sent_text(self):
        """A wrapped prompt can leave only its tail visible."""
        assert is_echo("the tests", "please run the tests") is True

    def test_unrelated(self):
        assert is_echo("All 12 tests pass.", "run the tests") is False

    def test_empty_inputs(self):
        assert is_echo("", "x") is False
        assert is_echo("x", "") is False


class TestParseResponse:
    """Tests for locating the latest reply."""

    def test_reply_between_prompts(self):
        """Text between the last two prompts, minus chrome and bullets."""
        assert parse_response(IDLE_PANE, "what is 2+2") == "The answer is 4."

    def test_multiline_reply(self):
        """Reply lines keep their order."""
        pane = "❯ summarize\n● First line.\nSecond line.\n\n❯ \n"
        assert parse_response(pane) == "First line.\nSecond line."

    def test_no_prompt(self):
        """Without a prompt there is no reply."""
        assert parse_response("just output\nmore output") == ""

    def test_echo_discarded(self):
        """If only our own text is between the prompts, nothing is returned."""
        pane = "❯\nrun the tests\n❯ \n"
        assert parse_response(pane, "run the tests") == ""

    def test_only_artifacts(self):
        """A reply made only of tool chrome is empty."""
        pane = "❯ go\n● Bash(ls)\n  ⎿  a.txt\n❯ \n"
        assert parse_response(pane) == ""


class TestExtractResponse:
    """Tests for capture-and-extract with retries."""

    def test_first_capture(self):
        """A usable first capture returns at once."""
        backend = FakeBackend()
        backend.add_session("claude-p", IDLE_PANE)

        assert extract_response(backend, "claude-p", "what is 2+2", retry_delay=0) == "The answer is 4."
        assert [c[2] for c in backend.calls] == [CAPTURE_SIZES[0]]

    def test_retries_with_wider_windows(self):
        """Empty results retry with the larger capture sizes."""
        backend = FakeBackend()
        backend.add_session("claude-p", ["no prompt", "still nothing", IDLE_PANE])

        assert extract_response(backend, "claude-p", retry_delay=0) == "The answer is 4."
        assert [c[2] for c in backend.calls] == list(CAPTURE_SIZES)

    def test_gives_up_after_all_attempts(self):
        """Capture failures count as empty and end in an empty result."""
        backend = FakeBackend()
        backend.add_session("claude-p")
        backend.fail_capture = True

        assert extract_response(backend, "claude-p", retry_delay=0) == ""

