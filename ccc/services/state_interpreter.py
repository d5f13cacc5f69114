"""StateInterpreter for detecting Claude Code session state.

Reads a tail capture of the tmux pane and decides whether the agent is
waiting at its input prompt or still working. Pure string inspection; the
only I/O is the capture in `probe`.
"""

import logging
import time

from ccc.backends.base import TerminalBackend, TransportError
from ccc.models.state import AgentState

logger = logging.getLogger(__name__)

# Lines captured for idle/busy classification
CLASSIFY_LINES = 15

# Lines captured for the liveness check
RUNNING_LINES = 30

# Remote state probes get a shorter deadline than control commands
PROBE_TIMEOUT = 5.0


class StateInterpreter:
    """Interprets pane content to determine agent state.

    The input prompt is a line reading just the prompt glyph. Anything
    below it other than separators and the status bar is the agent
    still producing output.
    """

    PROMPT_GLYPHS = ("❯", ">")

    SEPARATOR_CHAR = "─"

    STATUS_BAR_MARKERS = ("bypass permissions",)

    BUSY_MARKERS = (
        "ctrl+c to interrupt",
        "esc to interrupt",
        "✽",
        "✻",
        "✶",
        "✢",
        "Running…",
        "Thinking…",
    )

    # Any of these means the agent UI is on screen rather than a bare shell
    RUNNING_MARKERS = (
        "❯",
        "bypass permissions",
        "shift+tab to cycle",
        "ctrl+c to interrupt",
        "●",
        "✽",
        "✻",
        "⎿",
    )

    def classify(self, pane_text: str) -> AgentState:
        """Classify a pane capture.

        Args:
            pane_text: Tail of the pane, oldest line first.

        Returns:
            IDLE, BUSY or UNKNOWN (no prompt line visible).
        """
        lines = pane_text.split("\n")

        prompt_index = -1
        for i in range(len(lines) - 1, -1, -1):
            if lines[i].strip() in self.PROMPT_GLYPHS:
                prompt_index = i
                break

        if prompt_index < 0:
            return AgentState.UNKNOWN

        for line in lines[prompt_index + 1 :]:
            stripped = line.strip()
            if not stripped:
                continue
            if stripped.startswith(self.SEPARATOR_CHAR):
                continue
            if any(marker in stripped for marker in self.STATUS_BAR_MARKERS):
                continue
            if any(marker in stripped for marker in self.BUSY_MARKERS):
                return AgentState.BUSY

        return AgentState.IDLE

    def is_running(self, pane_text: str) -> bool:
        """Whether the agent UI (not just a shell) is on screen."""
        return any(marker in pane_text for marker in self.RUNNING_MARKERS)

    def probe(self, backend: TerminalBackend, tmux_name: str) -> AgentState:
        """Capture and classify a live session.

        Both round trips share one PROBE_TIMEOUT deadline.

        Returns:
            ABSENT when the tmux session does not exist, UNKNOWN when the
            capture fails or the deadline passes, otherwise the
            classification.
        """
        deadline = time.monotonic() + PROBE_TIMEOUT
        if not backend.session_exists(tmux_name, timeout=PROBE_TIMEOUT):
            return AgentState.ABSENT
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"State probe for {tmux_name} ran out of time")
            return AgentState.UNKNOWN
        try:
            pane = backend.capture_pane(tmux_name, CLASSIFY_LINES, timeout=remaining)
        except TransportError as e:
            logger.debug(f"State probe failed for {tmux_name}: {e}")
            return AgentState.UNKNOWN
        return self.classify(pane)

    def check_running(self, backend: TerminalBackend, tmux_name: str) -> bool:
        """Capture the wider window and check liveness; False on failure."""
        try:
            pane = backend.capture_pane(tmux_name, RUNNING_LINES, timeout=PROBE_TIMEOUT)
        except TransportError as e:
            logger.debug(f"Liveness capture failed for {tmux_name}: {e}")
            return False
        return self.is_running(pane)


# Module-level helpers for callers that do not hold an interpreter
_interpreter = StateInterpreter()


def classify(pane_text: str) -> AgentState:
    return _interpreter.classify(pane_text)


def is_running(pane_text: str) -> bool:
    return _interpreter.is_running(pane_text)
