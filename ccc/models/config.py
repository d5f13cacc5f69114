"""Application configuration models with Pydantic validation."""

from pathlib import Path

from pydantic import BaseModel, Field


class HostConfig(BaseModel):
    """A remote machine reachable over SSH."""

    address: str = Field(..., description="SSH target (user@host)")
    projects_dir: str = Field(
        default="",
        description="Base directory for projects on this host (defaults to ~)",
    )


class SessionConfig(BaseModel):
    """A named unit of agent work, local or on a configured host."""

    conversation_ref: int = Field(
        default=0,
        description="Chat thread id tied to this session (0 when unlinked)",
    )
    path: str = Field(default="", description="Working directory of the agent")
    host: str = Field(default="", description="Host name, empty for local")
    deleted: bool = Field(
        default=False,
        description="Soft-deleted: tmux session killed, mapping kept",
    )


class TelegramConfig(BaseModel):
    """Outbound chat notifier settings."""

    enabled: bool = Field(default=False)
    bot_token: str = Field(default="")
    group_id: int = Field(
        default=0,
        description="Forum group holding one topic per session",
    )
    api_base: str = Field(default="https://api.telegram.org")
    timeout: float = Field(default=10.0, gt=0, le=60)


class HookConfig(BaseModel):
    """Hook receiver (HTTP) configuration."""

    enabled: bool = Field(default=True)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5051, ge=1024, le=65535)
    echo_suppress_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Ignore prompt hooks this soon after an API-originated send",
    )


class TimingConfig(BaseModel):
    """Polling intervals, ceilings and settle delays (seconds)."""

    poll_interval: float = Field(default=2.0, ge=0, description="ask wait loop tick")
    ask_timeout: float = Field(default=300.0, gt=0, description="ask hard ceiling")
    ask_warmup: float = Field(default=0.5, ge=0)
    capture_interval: float = Field(default=3.0, ge=0, description="background capture tick")
    capture_timeout: float = Field(default=300.0, gt=0)
    capture_warmup: float = Field(default=1.0, ge=0)
    settle_delay: float = Field(default=5.0, ge=0, description="wait after creating a session")
    restart_wait: float = Field(default=3.0, ge=0)
    paste_delay: float = Field(default=2.0, ge=0, description="pause between text and Enter")
    extract_retry_delay: float = Field(default=2.0, ge=0)
    transcript_delay: float = Field(
        default=2.0, ge=0, description="wait before reading the transcript on a stop hook"
    )
    typing_check_interval: float = Field(default=2.0, ge=0)
    typing_signal_interval: float = Field(default=4.0, ge=0)
    typing_max_duration: float = Field(default=600.0, gt=0)
    subscribe_interval: float = Field(default=5.0, ge=0)


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    sessions: dict[str, SessionConfig] = Field(
        default_factory=dict,
        description="Session name (optionally host:name) -> session record",
    )
    hosts: dict[str, HostConfig] = Field(
        default_factory=dict,
        description="Host name -> remote host",
    )
    projects_dir: str = Field(
        default="",
        description="Base directory for new local projects (defaults to ~)",
    )
    socket_path: str = Field(
        default="~/.ccc.sock",
        description="Control socket path",
    )
    history_dir: str = Field(
        default="~/.ccc/history",
        description="Root of the per-conversation JSONL history",
    )
    agent_command: str = Field(
        default="claude --dangerously-skip-permissions",
        description="Command typed into a fresh tmux session",
    )
    send_lock: bool = Field(
        default=False,
        description="Reject a send/ask while another is in flight for the session",
    )
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    hooks: HookConfig = Field(default_factory=HookConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    debug: bool = Field(default=False, description="Enable debug logging")

    def active_sessions(self) -> dict[str, SessionConfig]:
        """Sessions that are not soft-deleted."""
        return {name: info for name, info in self.sessions.items() if not info.deleted}

    def host_address(self, host_name: str) -> str:
        """SSH address for a host, or empty if local or unknown."""
        if not host_name:
            return ""
        host = self.hosts.get(host_name)
        return host.address if host else ""

    def resolved_projects_dir(self, host_name: str = "") -> str:
        """Projects directory for local use or for a named host."""
        if host_name:
            host = self.hosts.get(host_name)
            if host and host.projects_dir:
                return host.projects_dir
            return "~"
        if self.projects_dir:
            return expand_path(self.projects_dir)
        return str(Path.home())

    def resolve_project_path(self, name: str) -> str:
        """Absolute path for a local project name.

        Names starting with / or ~ are paths; anything else is relative
        to projects_dir.
        """
        if name.startswith("/"):
            return name
        if name == "~" or name.startswith("~/"):
            return expand_path(name)
        return str(Path(self.resolved_projects_dir()) / name)


def expand_path(path: str) -> str:
    """Expand a leading ~ to the home directory."""
    if path == "~" or path.startswith("~/"):
        return str(Path(path).expanduser())
    return path
