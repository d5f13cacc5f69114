"""HookReceiver - Service for processing Claude Code lifecycle hooks.

Local sessions run Claude Code with hooks that POST here, which gives a
synchronous capture path next to pane scraping.

Events received:
- stop: Claude finished a turn; the transcript holds the reply
- user-prompt-submit: a prompt was submitted in the terminal
- question: Claude raised a multiple-choice question (AskUserQuestion)
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from ccc.models.config import SessionConfig
from ccc.models.history import Sender
from ccc.models.question import PendingQuestion
from ccc.services.config_service import ConfigService
from ccc.services.history_store import HistoryStore
from ccc.services.notification_service import TelegramNotifier
from ccc.services.question_store import QuestionStore
from ccc.services.typing_service import TypingIndicator

logger = logging.getLogger(__name__)

# Prompts relayed to chat are cut to this length
PROMPT_PREVIEW_CHARS = 500


class HookEventType(str, Enum):
    """Claude Code hook event types."""

    STOP = "stop"
    USER_PROMPT_SUBMIT = "user-prompt-submit"
    QUESTION = "question"


@dataclass
class HookEvent:
    """A Claude Code hook event."""

    event_type: HookEventType
    cwd: str = ""
    timestamp: int = field(default_factory=lambda: int(time.time()))
    data: dict = field(default_factory=dict)


@dataclass
class HookResult:
    """Result of processing a hook event."""

    success: bool
    session: str | None = None
    message: str = ""


def get_last_assistant_message(transcript_path: str) -> str:
    """Last non-empty assistant text block in a Claude Code transcript (JSONL)."""
    last_message = ""
    try:
        with open(Path(transcript_path).expanduser(), encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(entry, dict) or entry.get("type") != "assistant":
                    continue
                content = (entry.get("message") or {}).get("content") or []
                if not isinstance(content, list):
                    continue
                for block in content:
                    if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                        last_message = block["text"]
    except OSError as e:
        logger.warning(f"Could not read transcript {transcript_path}: {e}")
    return last_message


class HookReceiver:
    """Service for receiving and processing Claude Code hooks.

    This service:
    1. Maps the hook's cwd to a configured session
    2. Records replies and terminal-typed prompts in history
    3. Drives the typing indicator
    4. Stores pending questions for the `answer` command

    Prompts we typed ourselves are marked as API-originated so their
    prompt hook does not echo them back as human input.
    """

    def __init__(
        self,
        config_service: ConfigService,
        history: HistoryStore,
        questions: QuestionStore,
        typing: TypingIndicator | None = None,
        notifier: TelegramNotifier | None = None,
        echo_suppress_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the HookReceiver.

        Args:
            config_service: Source of session records.
            history: History store for replies and prompts.
            questions: Pending-question store.
            typing: Typing indicator (optional).
            notifier: Chat notifier (optional).
            echo_suppress_seconds: Window after an API send during which
                prompt hooks for that conversation are ignored.
            clock: Monotonic time source.
            sleep: Blocking sleep, used before reading a transcript.
        """
        self._config_service = config_service
        self._history = history
        self._questions = questions
        self._typing = typing
        self._notifier = notifier
        self._echo_suppress_seconds = echo_suppress_seconds
        self._clock = clock
        self._sleep = sleep

        # Thread lock for protecting shared state
        self._lock = threading.Lock()

        # conversation_ref -> clock() of the last API-originated send
        self._api_sent: dict[int, float] = {}

        # Track hook activity
        self._last_event_time: float = 0
        self._event_count: int = 0

    def mark_api_sent(self, conversation_ref: int) -> None:
        """Record that we just typed into this conversation's session."""
        if not conversation_ref:
            return
        with self._lock:
            self._api_sent[conversation_ref] = self._clock()

    def was_api_sent(self, conversation_ref: int) -> bool:
        with self._lock:
            sent_at = self._api_sent.get(conversation_ref)
        if sent_at is None:
            return False
        return self._clock() - sent_at < self._echo_suppress_seconds

    def resolve_session(self, cwd: str) -> tuple[str, SessionConfig] | None:
        """Find the session whose path matches a hook's cwd.

        Matches the exact path, a subdirectory of it, or a cwd ending in
        "/<name>". Local sessions win over remote ones.
        """
        if not cwd:
            return None

        remote_match: tuple[str, SessionConfig] | None = None
        for name, info in self._config_service.get_config().active_sessions().items():
            path = info.path.rstrip("/")
            matches = (
                (path and (cwd == path or cwd.startswith(path + "/")))
                or cwd.endswith("/" + name)
            )
            if not matches:
                continue
            if not info.host:
                return name, info
            if remote_match is None:
                remote_match = (name, info)
        return remote_match

    def process_event(self, event_type: str, data: dict | None = None) -> HookResult:
        """Process a Claude Code hook event.

        This is the main entry point for hook events from the API.

        Args:
            event_type: The event type (e.g., "stop", "question").
            data: Hook payload as sent by Claude Code.

        Returns:
            HookResult with processing outcome.
        """
        data = data or {}
        with self._lock:
            self._last_event_time = time.time()
            self._event_count += 1

        try:
            event_type_enum = HookEventType(event_type)
        except ValueError:
            logger.warning(f"Unknown hook event type: {event_type}")
            return HookResult(success=False, message=f"Unknown event type: {event_type}")

        event = HookEvent(event_type=event_type_enum, cwd=data.get("cwd", ""), data=data)
        logger.info(f"Processing {event_type} hook for cwd={event.cwd}")

        if event_type_enum == HookEventType.STOP:
            return self._handle_stop(event)
        if event_type_enum == HookEventType.USER_PROMPT_SUBMIT:
            return self._handle_user_prompt_submit(event)
        return self._handle_question(event)

    def _handle_stop(self, event: HookEvent) -> HookResult:
        match = self.resolve_session(event.cwd)
        if match is None:
            return HookResult(success=False, message=f"No session for cwd {event.cwd}")
        name, info = match

        if self._typing is not None:
            self._typing.stop(name)

        text = event.data.get("message") or ""
        transcript_path = event.data.get("transcript_path") or ""
        if not text and transcript_path:
            # The hook fires before the final turn is flushed to the transcript
            delay = self._config_service.get_config().timing.transcript_delay
            if delay:
                self._sleep(delay)
            text = get_last_assistant_message(transcript_path)
        if not text:
            return HookResult(success=True, session=name, message="No assistant text")

        record = self._history.append_dedup(info.conversation_ref, Sender.ASSISTANT, text)
        if record is not None and self._notifier is not None and info.conversation_ref:
            self._notifier.send_message(info.conversation_ref, text)

        return HookResult(
            success=True,
            session=name,
            message="Stored reply" if record else "Duplicate reply skipped",
        )

    def _handle_user_prompt_submit(self, event: HookEvent) -> HookResult:
        prompt = event.data.get("prompt") or ""
        if not prompt:
            return HookResult(success=False, message="Empty prompt")

        match = self._resolve_linked(event.cwd)
        if match is None:
            return HookResult(success=False, message=f"No linked session for cwd {event.cwd}")
        name, info = match
        ref = info.conversation_ref

        if self.was_api_sent(ref):
            logger.debug(f"Skipping prompt echo for {name}")
            return HookResult(success=True, session=name, message="API-originated prompt")

        self._history.append(ref, Sender.HUMAN, prompt)

        if self._typing is not None:
            self._typing.start(name, ref)

        if self._notifier is not None:
            preview = prompt
            if len(preview) > PROMPT_PREVIEW_CHARS:
                preview = preview[:PROMPT_PREVIEW_CHARS] + "..."
            self._notifier.send_message(ref, f"💬 {preview}")

        return HookResult(success=True, session=name, message="Stored prompt")

    def _handle_question(self, event: HookEvent) -> HookResult:
        match = self.resolve_session(event.cwd)
        if match is None:
            return HookResult(success=False, message=f"No session for cwd {event.cwd}")
        name, info = match

        raw_questions = (event.data.get("tool_input") or {}).get("questions") or []
        questions = []
        for raw in raw_questions:
            try:
                question = PendingQuestion.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed question for {name}: {e}")
                continue
            if question.question:
                questions.append(question)

        self._questions.set(name, questions)

        if self._notifier is not None and info.conversation_ref:
            for question in questions:
                lines = [f"❓ {question.header}", "", question.question]
                lines += [f"{i}. {opt.label}" for i, opt in enumerate(question.options) if opt.label]
                self._notifier.send_message(info.conversation_ref, "\n".join(lines))

        return HookResult(
            success=True, session=name, message=f"{len(questions)} question(s) pending"
        )

    def _resolve_linked(self, cwd: str) -> tuple[str, SessionConfig] | None:
        match = self.resolve_session(cwd)
        if match is None or not match[1].conversation_ref:
            return None
        return match

    def get_status(self) -> dict:
        """Get hook receiver status.

        Returns:
            Dict with status information.
        """
        with self._lock:
            last_event_time = self._last_event_time
            event_count = self._event_count

        return {
            "receiving_hooks": last_event_time > 0,
            "last_event_time": last_event_time or None,
            "event_count": event_count,
            "sessions_with_questions": self._questions.session_count,
        }

