"""ccc: drive Claude Code sessions in tmux from a local control socket."""

__version__ = "1.0.0"
