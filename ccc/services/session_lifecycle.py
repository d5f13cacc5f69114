"""Session Lifecycle Manager.

Makes sure a configured session has a tmux session with the agent
running in it before anything is typed into it, and handles explicit
continue and kill requests.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from ccc.backends import get_backend, parse_session_target, tmux_session_name
from ccc.backends.base import (
    HostNotConfiguredError,
    SessionExistsError,
    TerminalBackend,
    TransportError,
)
from ccc.models.config import AppConfig, SessionConfig
from ccc.models.state import AgentState
from ccc.services.config_service import ConfigService
from ccc.services.notification_service import TelegramNotifier
from ccc.services.state_interpreter import StateInterpreter

logger = logging.getLogger(__name__)

RESTART_FAILED = "failed to restart Claude"


class LifecycleError(Exception):
    """A session could not be brought to a usable state."""


class RestartFailedError(LifecycleError):
    """The agent was still not running after the single restart attempt."""

    def __init__(self, message: str = RESTART_FAILED):
        super().__init__(message)


@dataclass
class SessionTarget:
    """Everything needed to talk to one session's pane."""

    name: str
    info: SessionConfig
    backend: TerminalBackend
    tmux_name: str
    path: str

    @property
    def is_remote(self) -> bool:
        return self.backend.is_remote


class SessionLifecycleManager:
    """Creates, restarts, continues and kills agent sessions.

    Exactly one restart is attempted when the agent is found dead; a
    second failure is reported to the caller rather than retried.
    """

    def __init__(
        self,
        config_service: ConfigService,
        interpreter: StateInterpreter | None = None,
        notifier: TelegramNotifier | None = None,
        backend_factory: Callable[[AppConfig, str], TerminalBackend] = get_backend,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config_service = config_service
        self._interpreter = interpreter or StateInterpreter()
        self._notifier = notifier
        self._backend_factory = backend_factory
        self._sleep = sleep
        self._starting: set[str] = set()
        self._lock = threading.Lock()

    @property
    def config(self) -> AppConfig:
        return self._config_service.get_config()

    def target(self, session_name: str) -> SessionTarget:
        """Resolve a configured session to its backend and tmux name.

        Raises:
            KeyError: The session is not configured.
            HostNotConfiguredError: The session's host is unknown.
        """
        config = self.config
        info = config.sessions[session_name]
        backend = self._backend_factory(config, session_name)
        _, project = parse_session_target(session_name)

        path = info.path
        if not path:
            if info.host:
                path = f"{config.resolved_projects_dir(info.host).rstrip('/')}/{project}"
            else:
                path = config.resolve_project_path(project)

        return SessionTarget(
            name=session_name,
            info=info,
            backend=backend,
            tmux_name=tmux_session_name(session_name),
            path=path,
        )

    def is_starting(self, session_name: str) -> bool:
        with self._lock:
            return session_name in self._starting

    def state(self, target: SessionTarget) -> AgentState:
        """Current agent state, STARTING while inside the settle delay."""
        if self.is_starting(target.name):
            return AgentState.STARTING
        return self._interpreter.probe(target.backend, target.tmux_name)

    def probe(self, session_name: str) -> AgentState:
        """State by session name; UNKNOWN when the session cannot be resolved."""
        try:
            target = self.target(session_name)
        except (KeyError, HostNotConfiguredError):
            return AgentState.UNKNOWN
        return self.state(target)

    def ensure_running(self, session_name: str) -> SessionTarget:
        """Make sure the tmux session exists and the agent is running in it.

        Returns:
            The resolved session target.

        Raises:
            LifecycleError: Host unknown or the session could not be created.
            RestartFailedError: The agent did not come back after one restart.
        """
        try:
            target = self.target(session_name)
        except HostNotConfiguredError as e:
            raise LifecycleError("host not configured") from e

        backend = target.backend
        if not backend.session_exists(target.tmux_name):
            try:
                backend.create_session(target.tmux_name, target.path, continue_session=True)
            except SessionExistsError:
                logger.info(f"{target.tmux_name} was created concurrently")
            except TransportError as e:
                raise LifecycleError(f"failed to start session: {e}") from e
            else:
                self._settle(session_name)

        if not self._interpreter.check_running(backend, target.tmux_name):
            logger.warning(f"Agent not running in {target.tmux_name}, restarting")
            if not self.restart(target):
                raise RestartFailedError()

        return target

    def _settle(self, session_name: str) -> None:
        with self._lock:
            self._starting.add(session_name)
        try:
            self._sleep(self.config.timing.settle_delay)
        finally:
            with self._lock:
                self._starting.discard(session_name)

    def restart(self, target: SessionTarget) -> bool:
        """Relaunch the agent once and report whether it came up."""
        try:
            target.backend.restart_agent(target.tmux_name, continue_session=True)
        except TransportError as e:
            logger.error(f"Restart command failed for {target.tmux_name}: {e}")
            return False

        self._sleep(self.config.timing.restart_wait)
        return self._interpreter.check_running(target.backend, target.tmux_name)

    def check_and_recover(self, session_name: str) -> bool:
        """Crash check before delivering input, with user-visible notices.

        Returns:
            True if the agent is running (possibly after a restart).

        Raises:
            LifecycleError: There is no tmux session to recover.
        """
        try:
            target = self.target(session_name)
        except HostNotConfiguredError as e:
            raise LifecycleError("host not configured") from e
        ref = target.info.conversation_ref
        if not target.backend.session_exists(target.tmux_name):
            raise LifecycleError("session not running")
        if self._interpreter.check_running(target.backend, target.tmux_name):
            return True

        self._notify(ref, "🔄 Session interrupted, restarting...")
        if not self.restart(target):
            self._notify(ref, "❌ Failed to restart Claude. Use continue to restart manually.")
            return False
        self._notify(ref, "✅ Session restarted")
        return True

    def continue_session(self, session_name: str) -> SessionTarget:
        """Recreate the session with the conversation-continuation flag.

        Raises:
            LifecycleError: The session could not be recreated or died at once.
        """
        try:
            target = self.target(session_name)
        except HostNotConfiguredError as e:
            raise LifecycleError("host not configured") from e

        backend = target.backend
        if backend.session_exists(target.tmux_name):
            try:
                backend.kill_session(target.tmux_name)
            except TransportError as e:
                logger.warning(f"Kill before continue failed for {target.tmux_name}: {e}")
            self._sleep(0.3)

        try:
            backend.create_session(target.tmux_name, target.path, continue_session=True)
        except TransportError as e:
            raise LifecycleError(f"failed to start session: {e}") from e

        self._sleep(0.5)
        if not backend.session_exists(target.tmux_name):
            raise LifecycleError("session died immediately")

        logger.info(f"Continued session {session_name}")
        return target

    def kill(self, session_name: str) -> None:
        """Kill the tmux session and soft-delete the record."""
        target = self.target(session_name)
        try:
            target.backend.kill_session(target.tmux_name)
        except TransportError as e:
            logger.warning(f"Kill failed for {target.tmux_name}: {e}")
        self._config_service.mark_deleted(session_name)
        logger.info(f"Killed session {session_name}")

    def _notify(self, conversation_ref: int, text: str) -> None:
        if self._notifier is not None and conversation_ref:
            self._notifier.send_message(conversation_ref, text)
