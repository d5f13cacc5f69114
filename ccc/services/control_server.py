"""Unix socket server for the Control Protocol.

One JSON object per line in each direction, one thread per connection.
A connection may carry any number of requests; `subscribe` takes the
connection over until the client disconnects.
"""

import json
import logging
import os
import socket
import threading
from pathlib import Path

from ccc.models.config import expand_path
from ccc.models.protocol import ControlResponse
from ccc.services.control_dispatcher import ControlDispatcher

logger = logging.getLogger(__name__)

# accept() wakes at this interval to notice shutdown
ACCEPT_TIMEOUT = 0.5

LISTEN_BACKLOG = 20


class ControlServer:
    """Listens on a Unix socket and feeds requests to the dispatcher."""

    def __init__(self, socket_path: str | Path, dispatcher: ControlDispatcher):
        self.socket_path = Path(expand_path(str(socket_path)))
        self._dispatcher = dispatcher
        self._stop = threading.Event()
        self._sock: socket.socket | None = None
        self._thread: threading.Thread | None = None

    def bind(self) -> None:
        """Create the socket file (owner-only) and start listening.

        A stale socket file from a previous run is removed first.
        """
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self.socket_path.exists():
            self.socket_path.unlink()

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.bind(str(self.socket_path))
        os.chmod(self.socket_path, 0o600)
        sock.listen(LISTEN_BACKLOG)
        sock.settimeout(ACCEPT_TIMEOUT)
        self._sock = sock
        logger.info(f"Control socket listening on {self.socket_path}")

    def start(self) -> threading.Thread:
        """Bind and serve from a daemon thread."""
        if self._sock is None:
            self.bind()
        self._thread = threading.Thread(target=self.serve_forever, daemon=True, name="control-server")
        self._thread.start()
        return self._thread

    def serve_forever(self) -> None:
        if self._sock is None:
            self.bind()
        sock = self._sock

        while not self._stop.is_set():
            try:
                conn, _ = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop.is_set():
                    logger.error(f"Control socket accept failed: {e}")
                break
            threading.Thread(target=self._handle_conn, args=(conn,), daemon=True).start()

    def wait(self) -> None:
        """Block until the serving thread exits."""
        if self._thread is not None:
            self._thread.join()

    def stop(self) -> None:
        """Stop accepting connections and remove the socket file."""
        self._stop.set()
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        if self._thread is not None:
            self._thread.join(timeout=2 * ACCEPT_TIMEOUT)
        try:
            self.socket_path.unlink()
        except FileNotFoundError:
            pass
        logger.info("Control socket closed")

    def _handle_conn(self, conn: socket.socket) -> None:
        conn.settimeout(None)
        try:
            with conn, conn.makefile("rwb") as f:
                write_lock = threading.Lock()

                def write(frame: dict) -> None:
                    data = (json.dumps(frame, ensure_ascii=False) + "\n").encode("utf-8")
                    with write_lock:
                        f.write(data)
                        f.flush()

                for line in f:
                    if not line.strip():
                        continue
                    parsed = self._dispatcher.parse(line)
                    if isinstance(parsed, ControlResponse):
                        write(parsed.to_wire())
                        continue

                    if parsed.cmd == "subscribe":
                        self._dispatcher.subscribe(parsed, write, self._stop)
                        return

                    write(self._dispatcher.dispatch(parsed).to_wire())
        except OSError as e:
            logger.debug(f"Control connection closed: {e}")
