"""Abstract base class for terminal transport implementations.

Defines the interface every tmux transport (local or remote) provides.
"""

import os
import time
from abc import ABC, abstractmethod

# tmux session prefix for agent sessions
SESSION_PREFIX = "claude-"

# Claude Code needs two Enters to submit pasted text
SUBMIT_GAP_SECONDS = 0.05


class TransportError(Exception):
    """A tmux or ssh command failed or timed out."""


class SessionExistsError(TransportError):
    """new-session failed because the session already exists."""


class HostNotConfiguredError(TransportError):
    """The session references a host that is not in the config."""


def parse_session_target(target: str) -> tuple[str, str]:
    """Split "host:name" into (host, name).

    Absolute and home-relative paths are never host-qualified.

    Returns:
        Tuple of (host, name); host is empty for local sessions.
    """
    if target.startswith("/") or target.startswith("~/"):
        return "", target
    host, sep, name = target.partition(":")
    if sep and host:
        return host, name
    return "", target


def tmux_session_name(session_name: str) -> str:
    """Return the tmux session name for a (possibly host-qualified) session.

    Dots are replaced because tmux 3.5+ treats them as window/pane
    separators.
    """
    _, project = parse_session_target(session_name)
    project = os.path.basename(project.rstrip("/")) or project
    return SESSION_PREFIX + project.replace(".", "_")


class TerminalBackend(ABC):
    """Abstract interface for tmux transports.

    Terminal backends provide the ability to:
    - Create, inspect and kill named tmux sessions
    - Capture pane content
    - Inject literal text and named keys
    """

    def __init__(self, agent_command: str, paste_delay: float = 2.0):
        """Initialize the backend.

        Args:
            agent_command: Command that launches the agent in a fresh shell.
            paste_delay: Seconds between typing text and submitting it.
        """
        self.agent_command = agent_command
        self.paste_delay = paste_delay

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'tmux', 'ssh')."""

    @property
    def is_remote(self) -> bool:
        return False

    @abstractmethod
    def session_exists(self, name: str, timeout: float | None = None) -> bool:
        """Check whether a tmux session exists.

        Args:
            name: tmux session name.
            timeout: Optional override of the command timeout.

        Returns:
            True if the session exists, False otherwise (including on
            transport failure).
        """

    @abstractmethod
    def create_session(self, name: str, cwd: str, continue_session: bool) -> None:
        """Create a detached session at cwd and launch the agent in it.

        Raises:
            SessionExistsError: The session already exists.
            TransportError: The session could not be created.
        """

    @abstractmethod
    def send_literal_text(self, name: str, text: str) -> None:
        """Type text into the pane without interpreting key names.

        Raises:
            TransportError: On command failure.
        """

    @abstractmethod
    def send_keys(self, name: str, *keys: str) -> None:
        """Send named keys (e.g. 'Down', 'Enter', 'C-m') to the pane.

        Raises:
            TransportError: On command failure.
        """

    @abstractmethod
    def capture_pane(self, name: str, lines: int, timeout: float | None = None) -> str:
        """Capture the last `lines` lines of scrollback.

        Args:
            name: tmux session name.
            lines: Number of lines to capture.
            timeout: Optional override of the command timeout.

        Returns:
            Pane text with trailing newlines removed.

        Raises:
            TransportError: On command failure.
        """

    @abstractmethod
    def kill_session(self, name: str) -> None:
        """Kill a tmux session.

        Raises:
            TransportError: On command failure.
        """

    def launch_command(self, continue_session: bool) -> str:
        """Agent launch command, with the conversation-continuation flag."""
        if continue_session:
            return f"{self.agent_command} -c"
        return self.agent_command

    def send_submit(self, name: str) -> None:
        """Submit the current input line (double Enter)."""
        self.send_keys(name, "C-m")
        time.sleep(SUBMIT_GAP_SECONDS)
        self.send_keys(name, "C-m")

    def send_text(self, name: str, text: str) -> None:
        """Type text, wait for the paste to land, then submit it.

        Without the delay Enter can be taken as a newline inside the
        pasted block instead of a submit.
        """
        self.send_literal_text(name, text)
        time.sleep(self.paste_delay)
        self.send_submit(name)

    def restart_agent(self, name: str, continue_session: bool = True) -> None:
        """Type the relaunch command into a session whose agent exited."""
        self.send_literal_text(name, self.launch_command(continue_session))
        self.send_keys(name, "C-m")
