"""Background response capture for fire-and-forget sends.

Remote sessions have no stop hook reaching this process, so after a
`send` the reply is scraped from the pane once the agent settles.
At most one capture runs per session.
"""

import logging
import threading

from ccc.models.history import Sender
from ccc.models.state import AgentState
from ccc.services.completion_poller import CompletionPoller
from ccc.services.history_store import HistoryStore
from ccc.services.response_extractor import extract_response
from ccc.services.session_lifecycle import SessionTarget
from ccc.services.state_interpreter import StateInterpreter

logger = logging.getLogger(__name__)


class CaptureGuard:
    """Single-flight guard keyed by session name."""

    def __init__(self):
        self._active: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, session_name: str) -> bool:
        """Claim the session; False if a capture already holds it."""
        with self._lock:
            if session_name in self._active:
                return False
            self._active.add(session_name)
            return True

    def release(self, session_name: str) -> None:
        with self._lock:
            self._active.discard(session_name)

    def is_active(self, session_name: str) -> bool:
        with self._lock:
            return session_name in self._active


class BackgroundCapture:
    """Waits for a session to settle, then stores its reply in history."""

    def __init__(
        self,
        history: HistoryStore,
        interpreter: StateInterpreter | None = None,
        guard: CaptureGuard | None = None,
        interval: float = 3.0,
        timeout: float = 300.0,
        warmup: float = 1.0,
        retry_delay: float = 2.0,
    ):
        self._history = history
        self._interpreter = interpreter or StateInterpreter()
        self.guard = guard or CaptureGuard()
        self.interval = interval
        self.timeout = timeout
        self.warmup = warmup
        self.retry_delay = retry_delay

    def start(self, target: SessionTarget) -> threading.Thread | None:
        """Start a capture thread unless one is already running for the session."""
        if not self.guard.try_acquire(target.name):
            logger.debug(f"Capture already running for {target.name}")
            return None

        thread = threading.Thread(
            target=self._run,
            args=(target,),
            daemon=True,
            name=f"capture-{target.name}",
        )
        thread.start()
        return thread

    def _run(self, target: SessionTarget) -> None:
        try:
            self.capture(target)
        except Exception:
            logger.exception(f"Background capture for {target.name} failed")
        finally:
            self.guard.release(target.name)

    def capture(self, target: SessionTarget) -> bool:
        """Run one capture synchronously.

        Returns:
            True if a new assistant record was stored.
        """
        poller = CompletionPoller(
            interval=self.interval,
            timeout=self.timeout,
            warmup=self.warmup,
        )

        def read_state() -> AgentState:
            return self._interpreter.probe(target.backend, target.tmux_name)

        if not poller.wait(read_state):
            logger.info(f"Capture timed out for {target.name}")
            return False

        response = extract_response(
            target.backend, target.tmux_name, "", retry_delay=self.retry_delay
        )
        if not response:
            return False

        record = self._history.append_dedup(
            target.info.conversation_ref, Sender.ASSISTANT, response
        )
        if record is None:
            return False

        logger.info(f"Stored response for {target.name} ({len(response)} chars)")
        return True
