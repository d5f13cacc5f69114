"""Agent state derived from pane captures."""

from enum import Enum


class AgentState(str, Enum):
    """What a single pane capture says about the agent.

    Derived on every poll and never cached beyond one tick. Only the
    debounce counters in IdleDebouncer carry state across readings.
    """

    ABSENT = "absent"
    """No tmux session, or the agent has crashed out to a bare shell."""

    STARTING = "starting"
    """Session was just created and is inside its settle delay."""

    IDLE = "idle"
    """Prompt visible with no activity indicator after it."""

    BUSY = "busy"
    """Interrupt hint, spinner or Running/Thinking phrase after the prompt."""

    UNKNOWN = "unknown"
    """No prompt glyph in the capture; not enough signal to decide."""


class SessionStatus(str, Enum):
    """Status reported to control-socket callers."""

    ACTIVE = "active"
    IDLE = "idle"
    STOPPED = "stopped"
    STARTING = "starting"

    @classmethod
    def from_agent_state(cls, state: AgentState) -> "SessionStatus":
        if state == AgentState.BUSY:
            return cls.ACTIVE
        if state == AgentState.ABSENT:
            return cls.STOPPED
        if state == AgentState.STARTING:
            return cls.STARTING
        return cls.IDLE
