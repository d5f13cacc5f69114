"""Domain models for ccc."""

from ccc.models.config import (
    AppConfig,
    HookConfig,
    HostConfig,
    SessionConfig,
    TelegramConfig,
    TimingConfig,
)
from ccc.models.history import HistoryRecord, Sender
from ccc.models.protocol import (
    ControlEvent,
    ControlRequest,
    ControlResponse,
    SessionSummary,
)
from ccc.models.question import PendingQuestion, QuestionOption
from ccc.models.state import AgentState, SessionStatus

__all__ = [
    # State
    "AgentState",
    "SessionStatus",
    # History
    "HistoryRecord",
    "Sender",
    # Questions
    "PendingQuestion",
    "QuestionOption",
    # Protocol
    "ControlEvent",
    "ControlRequest",
    "ControlResponse",
    "SessionSummary",
    # Config
    "AppConfig",
    "HookConfig",
    "HostConfig",
    "SessionConfig",
    "TelegramConfig",
    "TimingConfig",
]
