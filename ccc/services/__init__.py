"""Services for ccc."""

from ccc.services.capture_service import BackgroundCapture, CaptureGuard
from ccc.services.completion_poller import CompletionPoller, IdleDebouncer
from ccc.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from ccc.services.control_dispatcher import CommandError, ControlDispatcher
from ccc.services.control_server import ControlServer
from ccc.services.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from ccc.services.history_store import HistoryStore, MessageIdCounter
from ccc.services.hook_receiver import (
    HookEvent,
    HookEventType,
    HookReceiver,
    HookResult,
)
from ccc.services.notification_service import TelegramNotifier
from ccc.services.question_store import QuestionStore
from ccc.services.response_extractor import (
    extract_response,
    filter_artifacts,
    is_ui_artifact,
    parse_response,
)
from ccc.services.session_lifecycle import (
    LifecycleError,
    RestartFailedError,
    SessionLifecycleManager,
    SessionTarget,
)
from ccc.services.state_interpreter import StateInterpreter, classify, is_running
from ccc.services.typing_service import TypingIndicator

__all__ = [
    # Config
    "ConfigService",
    "get_config_service",
    "reset_config_service",
    # Events
    "Event",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    # State inference
    "StateInterpreter",
    "classify",
    "is_running",
    "CompletionPoller",
    "IdleDebouncer",
    # Response extraction
    "extract_response",
    "filter_artifacts",
    "is_ui_artifact",
    "parse_response",
    # Lifecycle
    "LifecycleError",
    "RestartFailedError",
    "SessionLifecycleManager",
    "SessionTarget",
    # History
    "HistoryStore",
    "MessageIdCounter",
    # Side channels
    "BackgroundCapture",
    "CaptureGuard",
    "TelegramNotifier",
    "TypingIndicator",
    # Hooks and questions
    "HookEvent",
    "HookEventType",
    "HookReceiver",
    "HookResult",
    "QuestionStore",
    # Control protocol
    "CommandError",
    "ControlDispatcher",
    "ControlServer",
]
