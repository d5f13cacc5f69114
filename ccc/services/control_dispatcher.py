"""Control Protocol command dispatch.

Turns one ControlRequest into one ControlResponse. Every failure is
reported as `{ok: false, error}`; nothing raised here reaches the
socket as a traceback. `subscribe` is the exception: it streams events
until the client goes away.
"""

import json
import logging
import queue
import threading
import time
from collections.abc import Callable

from pydantic import ValidationError

from ccc import __version__
from ccc.backends.base import HostNotConfiguredError, TransportError
from ccc.models.config import AppConfig, SessionConfig
from ccc.models.history import Sender
from ccc.models.protocol import ControlEvent, ControlRequest, ControlResponse, SessionSummary
from ccc.models.state import AgentState, SessionStatus
from ccc.services.capture_service import BackgroundCapture
from ccc.services.completion_poller import CompletionPoller
from ccc.services.config_service import ConfigService
from ccc.services.event_bus import MESSAGE_EVENT, EventBus
from ccc.services.history_store import HistoryStore
from ccc.services.hook_receiver import HookReceiver
from ccc.services.notification_service import TelegramNotifier
from ccc.services.question_store import QuestionStore
from ccc.services.response_extractor import extract_response
from ccc.services.session_lifecycle import (
    RESTART_FAILED,
    LifecycleError,
    SessionLifecycleManager,
    SessionTarget,
)
from ccc.services.typing_service import TypingIndicator

logger = logging.getLogger(__name__)

DEFAULT_SCREENSHOT_LINES = 50

# Pause between Down presses when picking an option
OPTION_KEY_GAP = 0.05


class CommandError(Exception):
    """A command failed with a caller-facing error string."""


class ControlDispatcher:
    """Implements the control socket commands.

    Commands: ping, sessions, ask, send, continue, history, screenshot,
    questions, answer, subscribe.
    """

    def __init__(
        self,
        config_service: ConfigService,
        lifecycle: SessionLifecycleManager,
        history: HistoryStore,
        questions: QuestionStore,
        capture: BackgroundCapture,
        hooks: HookReceiver | None = None,
        typing: TypingIndicator | None = None,
        notifier: TelegramNotifier | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config_service = config_service
        self._lifecycle = lifecycle
        self._history = history
        self._questions = questions
        self._capture = capture
        self._hooks = hooks
        self._typing = typing
        self._notifier = notifier
        self._event_bus = event_bus
        self._clock = clock
        self._sleep = sleep
        self._started_at = clock()

        self._send_locks: dict[str, threading.Lock] = {}
        self._send_locks_guard = threading.Lock()

        self._handlers: dict[str, Callable[[ControlRequest], ControlResponse]] = {
            "ping": self.ping,
            "sessions": self.sessions,
            "ask": self.ask,
            "send": self.send,
            "continue": self.continue_session,
            "history": self.history,
            "screenshot": self.screenshot,
            "questions": self.list_questions,
            "answer": self.answer,
        }

    @property
    def config(self) -> AppConfig:
        return self._config_service.get_config()

    @staticmethod
    def parse(line: bytes | str) -> ControlRequest | ControlResponse:
        """Parse one request line.

        Returns:
            The request, or a failure response for malformed input.
        """
        try:
            data = json.loads(line)
            if not isinstance(data, dict):
                raise ValueError("request must be a JSON object")
            return ControlRequest.model_validate(data)
        except (ValueError, ValidationError):
            return ControlResponse.failure("invalid JSON")

    def dispatch(self, request: ControlRequest) -> ControlResponse:
        """Run one non-streaming command."""
        handler = self._handlers.get(request.cmd)
        if handler is None:
            return ControlResponse.failure("unknown command")
        try:
            return handler(request)
        except CommandError as e:
            return ControlResponse.failure(str(e))
        except Exception as e:
            logger.exception(f"Command {request.cmd} failed")
            return ControlResponse.failure(f"internal error: {e}")

    # -- helpers -----------------------------------------------------------

    def _session(self, request: ControlRequest, need_text: bool = False) -> SessionConfig:
        if need_text and (not request.session or not request.text):
            raise CommandError("session and text required")
        if not request.session:
            raise CommandError("session required")
        info = self.config.sessions.get(request.session)
        if info is None or info.deleted:
            raise CommandError("session not found")
        return info

    def _send_lock(self, session_name: str) -> threading.Lock:
        with self._send_locks_guard:
            lock = self._send_locks.get(session_name)
            if lock is None:
                lock = self._send_locks[session_name] = threading.Lock()
            return lock

    def _acquire(self, session_name: str) -> "threading.Lock | None":
        if not self.config.send_lock:
            return None
        lock = self._send_lock(session_name)
        if not lock.acquire(blocking=False):
            raise CommandError("session busy")
        return lock

    def _deliver(self, request: ControlRequest) -> tuple[SessionTarget, int]:
        """Shared send path for ask and send.

        Returns:
            The session target and the id of the stored api record.
        """
        try:
            target = self._lifecycle.ensure_running(request.session)
        except LifecycleError as e:
            raise CommandError(str(e)) from e

        ref = target.info.conversation_ref
        agent = request.sender or "api"

        if self._notifier is not None and ref > 0:
            self._notifier.send_message(ref, f"🤖 [{agent}] {request.text}")

        record = self._history.append(ref, Sender.API, request.text, agent=agent)
        message_id = record.id if record else self._history.counter.next()

        if self._hooks is not None:
            self._hooks.mark_api_sent(ref)

        try:
            target.backend.send_text(target.tmux_name, request.text)
        except TransportError as e:
            raise CommandError(f"failed to send: {e}") from e

        logger.info(f"Sent {len(request.text)} chars to {request.session} from {agent}")
        return target, message_id

    # -- commands ----------------------------------------------------------

    def ping(self, request: ControlRequest) -> ControlResponse:
        return ControlResponse(
            ok=True,
            version=__version__,
            uptime_seconds=int(self._clock() - self._started_at),
            sessions_active=len(self.config.active_sessions()),
        )

    def sessions(self, request: ControlRequest) -> ControlResponse:
        summaries = []
        for name, info in sorted(self.config.active_sessions().items()):
            status = SessionStatus.IDLE
            try:
                target = self._lifecycle.target(name)
            except HostNotConfiguredError:
                target = None
            if target is not None:
                state = self._lifecycle.state(target)
                if state == AgentState.BUSY:
                    status = SessionStatus.ACTIVE
                elif state == AgentState.STARTING:
                    status = SessionStatus.STARTING

            summaries.append(
                SessionSummary(
                    name=name,
                    host=info.host or "local",
                    status=status.value,
                    cwd=info.path,
                    last_activity=self._history.last_activity(info.conversation_ref),
                )
            )
        return ControlResponse(ok=True, sessions=summaries)

    def ask(self, request: ControlRequest) -> ControlResponse:
        """Send text and block until the agent settles, then return its reply."""
        self._session(request, need_text=True)
        lock = self._acquire(request.session)
        try:
            started = self._clock()
            target, _ = self._deliver(request)
            ref = target.info.conversation_ref

            if self._typing is not None and ref:
                self._typing.start(request.session, ref)

            timing = self.config.timing
            poller = CompletionPoller(
                interval=timing.poll_interval,
                timeout=timing.ask_timeout,
                warmup=timing.ask_warmup,
                clock=self._clock,
                sleep=self._sleep,
            )
            if not poller.wait(lambda: self._lifecycle.state(target)):
                raise CommandError("timeout waiting for response")

            response = extract_response(
                target.backend,
                target.tmux_name,
                request.text,
                retry_delay=timing.extract_retry_delay,
            )

            record = self._history.append_dedup(ref, Sender.ASSISTANT, response)
            if record is None:
                record = self._history.last_record(ref, Sender.ASSISTANT)
            message_id = record.id if record else self._history.counter.next()

            return ControlResponse(
                ok=True,
                response=response,
                message_id=message_id,
                duration_ms=int((self._clock() - started) * 1000),
            )
        finally:
            if lock is not None:
                lock.release()

    def send(self, request: ControlRequest) -> ControlResponse:
        """Send text and return at once; remote replies are captured in the background."""
        self._session(request, need_text=True)
        lock = self._acquire(request.session)
        try:
            target, message_id = self._deliver(request)
        finally:
            if lock is not None:
                lock.release()

        if target.is_remote:
            self._capture.start(target)
        return ControlResponse(ok=True, message_id=message_id)

    def continue_session(self, request: ControlRequest) -> ControlResponse:
        self._session(request)
        try:
            self._lifecycle.continue_session(request.session)
        except LifecycleError as e:
            raise CommandError(str(e)) from e
        return ControlResponse(ok=True, response=f"session {request.session} continued")

    def history(self, request: ControlRequest) -> ControlResponse:
        info = self._session(request)
        from_filter = request.from_filter
        if from_filter == "claude":
            from_filter = Sender.ASSISTANT.value
        messages = self._history.read(
            info.conversation_ref,
            after=request.after,
            limit=request.limit,
            from_filter=from_filter,
        )
        return ControlResponse(ok=True, messages=messages)

    def screenshot(self, request: ControlRequest) -> ControlResponse:
        info = self._session(request)
        try:
            target = self._lifecycle.target(request.session)
        except HostNotConfiguredError as e:
            raise CommandError(f"host not configured: {info.host}") from e

        lines = request.limit if request.limit > 0 else DEFAULT_SCREENSHOT_LINES
        try:
            content = target.backend.capture_pane(target.tmux_name, lines)
        except TransportError as e:
            raise CommandError(f"capture failed: {e}") from e
        return ControlResponse(ok=True, response=content)

    def list_questions(self, request: ControlRequest) -> ControlResponse:
        self._session(request)
        pending = self._questions.get(request.session)
        return ControlResponse(
            ok=True,
            questions=[
                {"index": i, **q.model_dump(mode="json", by_alias=True)}
                for i, q in enumerate(pending)
            ],
        )

    def answer(self, request: ControlRequest) -> ControlResponse:
        """Pick an option of a pending question by arrowing down and pressing Enter."""
        self._session(request)
        pending = self._questions.get(request.session)
        if not pending:
            raise CommandError("no pending questions")

        question_index = request.question_index or 0
        if not 0 <= question_index < len(pending):
            raise CommandError("question_index out of range")

        option_index = request.option_index
        options = pending[question_index].options
        if option_index is None or not 0 <= option_index < len(options):
            raise CommandError("option_index out of range")

        try:
            if not self._lifecycle.check_and_recover(request.session):
                raise CommandError(RESTART_FAILED)
            target = self._lifecycle.target(request.session)
        except LifecycleError as e:
            raise CommandError(str(e)) from e

        try:
            for _ in range(option_index):
                target.backend.send_keys(target.tmux_name, "Down")
                self._sleep(OPTION_KEY_GAP)
            target.backend.send_keys(target.tmux_name, "Enter")
        except TransportError as e:
            raise CommandError(f"failed to send: {e}") from e

        self._questions.remove(request.session, question_index)
        logger.info(f"Selected option {option_index} for {request.session}")
        return ControlResponse(ok=True, response=f"selected option {option_index + 1}")

    # -- streaming ---------------------------------------------------------

    def subscribe(
        self,
        request: ControlRequest,
        write: Callable[[dict], None],
        stop: threading.Event | None = None,
    ) -> None:
        """Stream status changes and new messages until the client disconnects.

        Args:
            request: The subscribe request; empty `sessions` means all.
            write: Sends one frame; raises OSError once the client is gone.
            stop: Optional server shutdown signal.
        """
        stop = stop or threading.Event()
        names = list(request.sessions) or sorted(self.config.active_sessions())
        events = self._event_bus.open_queue() if self._event_bus is not None else None

        try:
            write(ControlEvent(event="subscribed", session=",".join(names)).to_wire())

            interval = self.config.timing.subscribe_interval
            next_poll = self._clock() + interval
            last_status: dict[str, str] = {}

            while not stop.is_set():
                wait = max(0.0, next_poll - self._clock())
                if events is not None:
                    try:
                        event = events.get(timeout=wait)
                    except queue.Empty:
                        event = None
                    if event is not None and event.event_type == MESSAGE_EVENT:
                        self._write_message(event.data, names, write)
                else:
                    stop.wait(wait)

                if self._clock() >= next_poll:
                    self._write_statuses(names, last_status, write)
                    next_poll = self._clock() + interval
        except OSError as e:
            logger.debug(f"Subscriber disconnected: {e}")
        finally:
            if events is not None:
                self._event_bus.close_queue(events)

    def _write_message(self, data: dict, names: list[str], write: Callable[[dict], None]) -> None:
        ref = data.get("conversation_ref")
        sessions = self.config.sessions
        for name in names:
            info = sessions.get(name)
            if info is not None and info.conversation_ref == ref:
                write(
                    ControlEvent(
                        event="message",
                        session=name,
                        sender=data.get("from"),
                        text=data.get("text"),
                    ).to_wire()
                )
                return

    def _write_statuses(
        self, names: list[str], last_status: dict[str, str], write: Callable[[dict], None]
    ) -> None:
        sessions = self.config.sessions
        for name in names:
            info = sessions.get(name)
            if info is None or info.deleted:
                continue
            try:
                target = self._lifecycle.target(name)
            except HostNotConfiguredError:
                continue

            status = SessionStatus.from_agent_state(self._lifecycle.state(target)).value
            if last_status.get(name) != status:
                last_status[name] = status
                write(ControlEvent(event="status", session=name, status=status).to_wire())
