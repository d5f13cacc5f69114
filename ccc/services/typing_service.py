"""Typing/activity side-channel.

While the agent is working on a session, keep the chat thread showing
"typing". One worker thread per session; starting again replaces the
previous worker.
"""

import logging
import threading
import time
from collections.abc import Callable

from ccc.models.state import AgentState
from ccc.services.completion_poller import IdleDebouncer
from ccc.services.notification_service import TelegramNotifier

logger = logging.getLogger(__name__)


class TypingIndicator:
    """Sends periodic typing signals until the agent settles.

    Stops after two consecutive idle readings, on stop(), or when the
    maximum duration elapses.
    """

    def __init__(
        self,
        notifier: TelegramNotifier,
        read_state: Callable[[str], AgentState],
        check_interval: float = 2.0,
        signal_interval: float = 4.0,
        max_duration: float = 600.0,
    ):
        """Initialize the indicator.

        Args:
            notifier: Chat notifier used for typing signals.
            read_state: Returns the current agent state for a session name.
            check_interval: Seconds between state checks.
            signal_interval: Seconds between typing signals.
            max_duration: Hard cap on one indicator's lifetime.
        """
        self._notifier = notifier
        self._read_state = read_state
        self.check_interval = check_interval
        self.signal_interval = signal_interval
        self.max_duration = max_duration
        self._lock = threading.Lock()
        self._cancels: dict[str, threading.Event] = {}

    def start(self, session_name: str, conversation_ref: int) -> threading.Thread:
        """Start (or restart) the indicator for a session."""
        cancel = threading.Event()
        with self._lock:
            previous = self._cancels.get(session_name)
            if previous is not None:
                previous.set()
            self._cancels[session_name] = cancel

        logger.debug(f"Typing indicator started for {session_name}")
        thread = threading.Thread(
            target=self._run,
            args=(session_name, conversation_ref, cancel),
            daemon=True,
            name=f"typing-{session_name}",
        )
        thread.start()
        return thread

    def stop(self, session_name: str) -> None:
        """Stop the indicator for a session, if any."""
        with self._lock:
            cancel = self._cancels.pop(session_name, None)
        if cancel is not None:
            cancel.set()
            logger.debug(f"Typing indicator stopped for {session_name}")

    def is_active(self, session_name: str) -> bool:
        with self._lock:
            return session_name in self._cancels

    def _release(self, session_name: str, cancel: threading.Event) -> None:
        with self._lock:
            if self._cancels.get(session_name) is cancel:
                del self._cancels[session_name]

    def _run(self, session_name: str, conversation_ref: int, cancel: threading.Event) -> None:
        try:
            self._loop(session_name, conversation_ref, cancel)
        except Exception:
            logger.exception(f"Typing indicator for {session_name} failed")
        finally:
            self._release(session_name, cancel)

    def _loop(self, session_name: str, conversation_ref: int, cancel: threading.Event) -> None:
        start = time.monotonic()
        deadline = start + self.max_duration
        next_check = start + self.check_interval
        next_signal = start + self.signal_interval
        debouncer = IdleDebouncer()

        self._notifier.send_typing(conversation_ref)

        while True:
            now = time.monotonic()
            wake = min(next_check, next_signal, deadline)
            if cancel.wait(max(0.0, wake - now)):
                return

            now = time.monotonic()
            if now >= deadline:
                logger.debug(f"Typing indicator for {session_name} hit its time limit")
                return

            if now >= next_check:
                next_check = now + self.check_interval
                if debouncer.feed(self._read_state(session_name)):
                    logger.debug(f"{session_name} idle, stopping typing indicator")
                    return

            if now >= next_signal:
                next_signal = now + self.signal_interval
                self._notifier.send_typing(conversation_ref)
