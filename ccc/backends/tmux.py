"""Local tmux transport.

Runs tmux directly against the per-user server socket.
"""

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from ccc.backends.base import SessionExistsError, TerminalBackend, TransportError

logger = logging.getLogger(__name__)

# Default timeout for tmux control commands (seconds)
TMUX_TIMEOUT = 10

# Fallback install locations when tmux is not on PATH
TMUX_FALLBACK_PATHS = ("/opt/homebrew/bin/tmux", "/usr/local/bin/tmux", "/usr/bin/tmux")


def detect_socket_path() -> str:
    """Find the default tmux server socket for the current user.

    Prefers the Linux location, then the macOS one, then guesses by OS.
    """
    uid = os.getuid()
    linux_socket = f"/tmp/tmux-{uid}/default"
    macos_socket = f"/private/tmp/tmux-{uid}/default"

    if os.path.exists(linux_socket):
        return linux_socket
    if os.path.exists(macos_socket):
        return macos_socket
    if os.path.exists("/private"):
        return macos_socket
    return linux_socket


def detect_tmux_binary() -> str:
    """Locate the tmux binary."""
    found = shutil.which("tmux")
    if found:
        return found
    for candidate in TMUX_FALLBACK_PATHS:
        if os.path.exists(candidate):
            return candidate
    return "tmux"


def _run_tmux(
    binary: str, socket_path: str, *args: str, timeout: float = TMUX_TIMEOUT
) -> tuple[int, str, str]:
    """Run a tmux command.

    Args:
        binary: tmux executable.
        socket_path: Server socket passed with -S.
        *args: Command arguments to pass to tmux.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr).
    """
    cmd = [binary, "-S", socket_path, *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (1, "", "Command timed out")
    except FileNotFoundError:
        return (1, "", "tmux not found")


class LocalTmuxBackend(TerminalBackend):
    """tmux sessions on this machine."""

    def __init__(
        self,
        agent_command: str,
        paste_delay: float = 2.0,
        socket_path: str | None = None,
        binary: str | None = None,
    ):
        super().__init__(agent_command, paste_delay)
        self.socket_path = socket_path or detect_socket_path()
        self.binary = binary or detect_tmux_binary()

    @property
    def backend_name(self) -> str:
        return "tmux"

    def _tmux(self, *args: str, timeout: float = TMUX_TIMEOUT) -> tuple[int, str, str]:
        return _run_tmux(self.binary, self.socket_path, *args, timeout=timeout)

    def _check(self, action: str, *args: str, timeout: float = TMUX_TIMEOUT) -> str:
        returncode, stdout, stderr = self._tmux(*args, timeout=timeout)
        if returncode != 0:
            raise TransportError(f"{action}: {stderr.strip() or f'exit status {returncode}'}")
        return stdout

    def ensure_server(self) -> None:
        """Start the tmux server if its socket directory is missing.

        Handles the post-reboot case where no server has run yet.
        """
        socket_dir = Path(self.socket_path).parent
        if socket_dir.exists():
            return
        socket_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._check("failed to start tmux server", "new-session", "-d", "-s", "ccc-init")
        self._tmux("kill-session", "-t", "ccc-init")
        logger.info(f"Started tmux server at {self.socket_path}")

    def session_exists(self, name: str, timeout: float | None = None) -> bool:
        try:
            self.ensure_server()
        except TransportError as e:
            logger.warning(f"tmux server unavailable: {e}")
            return False
        returncode, _, _ = self._tmux("has-session", "-t", name, timeout=timeout or TMUX_TIMEOUT)
        return returncode == 0

    def create_session(self, name: str, cwd: str, continue_session: bool) -> None:
        self.ensure_server()

        # Start a login shell rather than the agent itself, so the session
        # survives the agent exiting
        returncode, _, stderr = self._tmux("new-session", "-d", "-s", name, "-c", cwd)
        if returncode != 0:
            if "duplicate session" in stderr:
                raise SessionExistsError(f"duplicate session: {name}")
            raise TransportError(stderr.strip() or f"new-session exit status {returncode}")

        self._tmux("set-option", "-t", name, "mouse", "on")

        time.sleep(0.2)
        self._check(
            "failed to launch agent",
            "send-keys",
            "-t",
            name,
            self.launch_command(continue_session),
            "C-m",
        )
        logger.info(f"Created tmux session {name} in {cwd}")

    def send_literal_text(self, name: str, text: str) -> None:
        self._check("send-keys", "send-keys", "-t", name, "-l", text)

    def send_keys(self, name: str, *keys: str) -> None:
        self._check("send-keys", "send-keys", "-t", name, *keys)

    def capture_pane(self, name: str, lines: int, timeout: float | None = None) -> str:
        stdout = self._check(
            "failed to capture pane",
            "capture-pane",
            "-t",
            name,
            "-p",
            "-S",
            f"-{lines}",
            timeout=timeout or TMUX_TIMEOUT,
        )
        return stdout.rstrip("\n")

    def kill_session(self, name: str) -> None:
        self._check("kill-session", "kill-session", "-t", name)
        logger.info(f"Killed tmux session {name}")
