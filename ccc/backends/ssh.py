"""Remote tmux transport over SSH.

Every operation is one ssh invocation running a login shell on the
remote host, so PATH additions from the user's profile apply.
"""

import base64
import logging
import shlex
import subprocess
import time

from ccc.backends.base import SessionExistsError, TerminalBackend, TransportError

logger = logging.getLogger(__name__)

# Default timeout for remote commands (seconds)
SSH_TIMEOUT = 10

SSH_OPTIONS = (
    "-o", "BatchMode=yes",
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "ConnectTimeout=5",
)


def _run_ssh(address: str, command: str, timeout: float = SSH_TIMEOUT) -> str:
    """Run a shell command on a remote host.

    Args:
        address: SSH target (user@host).
        command: Shell command, run under an interactive login bash.
        timeout: Deadline in seconds.

    Returns:
        Stripped stdout.

    Raises:
        TransportError: On timeout or non-zero exit.
    """
    wrapped = f"bash -i -l -c {shlex.quote(command)}"
    cmd = ["ssh", *SSH_OPTIONS, address, wrapped]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise TransportError(f"timeout after {timeout:g}s")
    except FileNotFoundError:
        raise TransportError("ssh not found")

    if result.returncode != 0:
        raise TransportError(f"exit status {result.returncode}: {(result.stderr or '').strip()}")
    return (result.stdout or "").strip()


def remote_path(path: str) -> str:
    """Quote a path for the remote shell, leaving a leading ~ to expand to $HOME."""
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return '"$HOME"/' + shlex.quote(path[2:])
    return shlex.quote(path)


class SSHTmuxBackend(TerminalBackend):
    """tmux sessions on a configured remote host."""

    def __init__(self, address: str, agent_command: str, paste_delay: float = 2.0):
        super().__init__(agent_command, paste_delay)
        self.address = address

    @property
    def backend_name(self) -> str:
        return "ssh"

    @property
    def is_remote(self) -> bool:
        return True

    def run(self, command: str, timeout: float = SSH_TIMEOUT) -> str:
        return _run_ssh(self.address, command, timeout=timeout)

    def session_exists(self, name: str, timeout: float | None = None) -> bool:
        try:
            self.run(
                f"tmux has-session -t {shlex.quote(name)} 2>/dev/null",
                timeout=timeout or SSH_TIMEOUT,
            )
        except TransportError:
            return False
        return True

    def create_session(self, name: str, cwd: str, continue_session: bool) -> None:
        quoted = shlex.quote(name)
        command = (
            f"tmux new-session -d -s {quoted} -c {remote_path(cwd)} && "
            f"tmux set-option -t {quoted} mouse on && "
            f"tmux send-keys -t {quoted} {shlex.quote(self.launch_command(continue_session))} C-m"
        )
        try:
            self.run(command)
        except TransportError as e:
            if "duplicate session" in str(e):
                raise SessionExistsError(f"duplicate session: {name}") from e
            raise

        # Pre-answer the bypass-permissions confirmation shown on launch
        time.sleep(2)
        self.run(
            f"tmux send-keys -t {quoted} Down && sleep 0.1 && "
            f"tmux send-keys -t {quoted} Enter"
        )
        logger.info(f"Created remote tmux session {name} on {self.address}")

    def send_literal_text(self, name: str, text: str) -> None:
        # base64 keeps quotes, newlines and shell metacharacters intact
        encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
        self.run(
            f"echo {encoded} | base64 -d | xargs -0 tmux send-keys -t {shlex.quote(name)} -l"
        )

    def send_keys(self, name: str, *keys: str) -> None:
        args = " ".join(shlex.quote(k) for k in keys)
        self.run(f"tmux send-keys -t {shlex.quote(name)} {args}")

    def send_submit(self, name: str) -> None:
        quoted = shlex.quote(name)
        self.run(
            f"tmux send-keys -t {quoted} C-m && sleep 0.05 && tmux send-keys -t {quoted} C-m"
        )

    def capture_pane(self, name: str, lines: int, timeout: float | None = None) -> str:
        return self.run(
            f"tmux capture-pane -t {shlex.quote(name)} -p -S -{lines}",
            timeout=timeout or SSH_TIMEOUT,
        )

    def kill_session(self, name: str) -> None:
        self.run(f"tmux kill-session -t {shlex.quote(name)}")
        logger.info(f"Killed remote tmux session {name} on {self.address}")
