"""Tests for ControlServer over a real Unix socket."""

import json
import os
import socket
import stat
import tempfile
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ccc.models.history import Sender
from ccc.services.control_dispatcher import ControlDispatcher
from ccc.services.control_server import ControlServer
from ccc.services.question_store import QuestionStore


@pytest.fixture
def socket_dir():
    """Short directory: Unix socket paths are limited to ~100 bytes."""
    with tempfile.TemporaryDirectory(prefix="ccc", dir="/tmp") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def server(socket_dir, config_service, lifecycle, history, event_bus):
    dispatcher = ControlDispatcher(
        config_service,
        lifecycle,
        history,
        QuestionStore(),
        MagicMock(),
        event_bus=event_bus,
    )
    server = ControlServer(socket_dir / "ccc.sock", dispatcher)
    server.start()
    yield server
    server.stop()


class Client:
    """Line-oriented client for the control socket."""

    def __init__(self, path):
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.settimeout(5)
        self.sock.connect(str(path))
        self.file = self.sock.makefile("rwb")

    def send_line(self, raw: bytes) -> None:
        self.file.write(raw)
        self.file.flush()

    def request(self, **fields) -> dict:
        self.send_line(json.dumps(fields).encode("utf-8") + b"\n")
        return self.read()

    def read(self) -> dict:
        return json.loads(self.file.readline())

    def close(self) -> None:
        self.file.close()
        self.sock.close()


@pytest.fixture
def client(server):
    conn = Client(server.socket_path)
    yield conn
    conn.close()


class TestSocketFile:
    """Tests for the socket file itself."""

    def test_owner_only(self, server):
        mode = stat.S_IMODE(os.stat(server.socket_path).st_mode)
        assert mode == 0o600

    def test_stale_socket_replaced(self, socket_dir, server):
        """A leftover socket file does not stop a new server binding."""
        stale = socket_dir / "stale.sock"
        stale.write_text("")
        other = ControlServer(stale, server._dispatcher)
        other.bind()
        try:
            assert stat.S_ISSOCK(os.stat(stale).st_mode)
        finally:
            other.stop()

    def test_removed_on_stop(self, socket_dir, server):
        server.stop()
        assert not server.socket_path.exists()


class TestRequests:
    """Tests for request/response round trips."""

    def test_ping(self, client):
        response = client.request(cmd="ping")
        assert response["ok"] is True
        assert "version" in response

    def test_several_requests_per_connection(self, client):
        assert client.request(cmd="ping")["ok"] is True
        assert client.request(cmd="sessions")["ok"] is True
        assert client.request(cmd="history", session="nope") == {
            "ok": False,
            "error": "session not found",
        }

    def test_invalid_json_keeps_connection(self, client):
        """A bad line gets an error and the connection stays usable."""
        client.send_line(b"{oops\n")
        assert client.read() == {"ok": False, "error": "invalid JSON"}
        assert client.request(cmd="ping")["ok"] is True

    def test_blank_lines_ignored(self, client):
        client.send_line(b"\n\n")
        assert client.request(cmd="ping")["ok"] is True

    def test_send_over_socket(self, client, backend):
        response = client.request(cmd="send", session="proj", text="hello")

        assert response["ok"] is True
        assert backend.texts_sent("claude-proj") == ["hello"]

    def test_concurrent_clients(self, server):
        first = Client(server.socket_path)
        second = Client(server.socket_path)
        try:
            assert second.request(cmd="ping")["ok"] is True
            assert first.request(cmd="ping")["ok"] is True
        finally:
            first.close()
            second.close()


class TestSubscribe:
    """Tests for streaming over the socket."""

    def test_receives_messages(self, client, history, event_bus):
        subscribed = client.request(cmd="subscribe", sessions=["proj"])
        assert subscribed == {"event": "subscribed", "session": "proj"}

        deadline = time.monotonic() + 5
        while event_bus.listener_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        history.append(42, Sender.ASSISTANT, "done")

        while True:
            frame = client.read()
            if frame["event"] == "message":
                break

        assert frame == {"event": "message", "session": "proj", "from": "assistant", "text": "done"}
