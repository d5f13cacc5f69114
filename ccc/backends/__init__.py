"""Terminal transports for agent sessions.

Sessions run in tmux, either locally or on a configured host reached
over SSH. `get_backend` picks the right transport for a session.
"""

from ccc.backends.base import (
    HostNotConfiguredError,
    SessionExistsError,
    TerminalBackend,
    TransportError,
    parse_session_target,
    tmux_session_name,
)
from ccc.backends.ssh import SSHTmuxBackend
from ccc.backends.tmux import LocalTmuxBackend
from ccc.models.config import AppConfig

# Local backend is shared; it holds no per-session state
_local_backend: LocalTmuxBackend | None = None


def get_local_backend(config: AppConfig) -> LocalTmuxBackend:
    """Get the shared local tmux backend."""
    global _local_backend
    if _local_backend is None:
        _local_backend = LocalTmuxBackend(
            agent_command=config.agent_command,
            paste_delay=config.timing.paste_delay,
        )
    return _local_backend


def reset_local_backend() -> None:
    """Reset the shared local backend (for testing)."""
    global _local_backend
    _local_backend = None


def get_backend(config: AppConfig, session_name: str) -> TerminalBackend:
    """Pick the transport for a session.

    Args:
        config: Current configuration.
        session_name: Session key, optionally host-qualified.

    Returns:
        A local backend, or an SSH backend bound to the session's host.

    Raises:
        HostNotConfiguredError: The session's host is not in the config.
    """
    info = config.sessions.get(session_name)
    host_name = info.host if info and info.host else parse_session_target(session_name)[0]
    if not host_name:
        return get_local_backend(config)

    address = config.host_address(host_name)
    if not address:
        raise HostNotConfiguredError(f"host not configured: {host_name}")
    return SSHTmuxBackend(
        address=address,
        agent_command=config.agent_command,
        paste_delay=config.timing.paste_delay,
    )


__all__ = [
    "HostNotConfiguredError",
    "LocalTmuxBackend",
    "SSHTmuxBackend",
    "SessionExistsError",
    "TerminalBackend",
    "TransportError",
    "get_backend",
    "get_local_backend",
    "parse_session_target",
    "reset_local_backend",
    "tmux_session_name",
]
