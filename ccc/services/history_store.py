"""Append-only JSONL history, one directory per conversation.

Layout: <history_dir>/<conversation_ref>/messages/<YYYY-MM-DD-HH>.jsonl
Filenames sort chronologically, so reads walk them newest first.
"""

import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ccc.models.config import expand_path
from ccc.models.history import HistoryRecord, Sender
from ccc.services.event_bus import MESSAGE_EVENT, EventBus

logger = logging.getLogger(__name__)

DEFAULT_READ_LIMIT = 100


class MessageIdCounter:
    """Process-wide monotonic message id source."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def current(self) -> int:
        with self._lock:
            return self._value

    def seed(self, value: int) -> None:
        """Raise the counter to at least `value`."""
        with self._lock:
            self._value = max(self._value, value)


class HistoryStore:
    """Reads and writes per-conversation message logs.

    Every successful append is also emitted on the EventBus as a
    `message` event carrying the conversation ref.
    """

    def __init__(
        self,
        history_dir: str | Path,
        counter: MessageIdCounter | None = None,
        event_bus: EventBus | None = None,
    ):
        self.history_dir = Path(expand_path(str(history_dir)))
        self.counter = counter or MessageIdCounter()
        self.event_bus = event_bus
        self._write_lock = threading.Lock()

    def messages_dir(self, conversation_ref: int) -> Path:
        return self.history_dir / str(conversation_ref) / "messages"

    def _current_file(self, conversation_ref: int) -> Path:
        hour = datetime.now().strftime("%Y-%m-%d-%H")
        return self.messages_dir(conversation_ref) / f"{hour}.jsonl"

    def _files_newest_first(self, conversation_ref: int) -> list[Path]:
        directory = self.messages_dir(conversation_ref)
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.jsonl"), reverse=True)

    def seed_counter(self) -> int:
        """Seed the id counter from the highest id in any history file.

        Returns:
            The highest id found (0 if none).
        """
        max_id = 0
        if self.history_dir.is_dir():
            for path in self.history_dir.rglob("*.jsonl"):
                for record in self._read_file(path):
                    max_id = max(max_id, record.id)
        self.counter.seed(max_id)
        if max_id:
            logger.info(f"Message id counter initialized to {max_id}")
        return max_id

    def append(
        self,
        conversation_ref: int,
        sender: Sender,
        text: str,
        agent: str | None = None,
        media_kind: str | None = None,
        media_path: str | None = None,
    ) -> HistoryRecord | None:
        """Assign an id and append a record.

        Records for conversation_ref 0 (no linked thread) are not stored.

        Returns:
            The stored record, or None if skipped or the write failed.
        """
        if not conversation_ref:
            return None

        record = HistoryRecord(
            id=self.counter.next(),
            timestamp=int(time.time()),
            sender=sender,
            text=text,
            agent=agent,
            media_kind=media_kind,
            media_path=media_path,
        )
        line = json.dumps(record.to_json_dict(), ensure_ascii=False)

        try:
            with self._write_lock:
                path = self._current_file(conversation_ref)
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            logger.error(f"Failed to append history for {conversation_ref}: {e}")
            return None

        if self.event_bus is not None:
            self.event_bus.emit(
                MESSAGE_EVENT,
                {
                    "conversation_ref": conversation_ref,
                    "from": record.sender.value,
                    "text": record.text,
                    "id": record.id,
                },
            )
        return record

    def read(
        self,
        conversation_ref: int,
        after: int = 0,
        limit: int = DEFAULT_READ_LIMIT,
        from_filter: str = "",
    ) -> list[HistoryRecord]:
        """Read records with id > after, oldest first, at most the newest `limit`."""
        if limit <= 0:
            limit = DEFAULT_READ_LIMIT

        messages: list[HistoryRecord] = []
        for path in self._files_newest_first(conversation_ref):
            if len(messages) >= limit:
                break
            file_messages = [
                record
                for record in self._read_file(path)
                if record.id > after
                and (not from_filter or record.sender.value == from_filter)
            ]
            messages = file_messages + messages

        if len(messages) > limit:
            messages = messages[-limit:]
        return messages

    def last_record(self, conversation_ref: int, sender: Sender) -> HistoryRecord | None:
        records = self.read(conversation_ref, limit=1, from_filter=sender.value)
        return records[-1] if records else None

    def append_dedup(
        self, conversation_ref: int, sender: Sender, text: str
    ) -> HistoryRecord | None:
        """Append unless the last record from the same sender has identical text.

        Both the inline ask path and the stop hook can store the same reply.
        """
        last = self.last_record(conversation_ref, sender)
        if last is not None and last.text == text:
            logger.debug(f"Skipping duplicate {sender.value} message for {conversation_ref}")
            return None
        return self.append(conversation_ref, sender, text)

    def last_activity(self, conversation_ref: int) -> int:
        """Unix mtime of the newest history file, or 0."""
        files = self._files_newest_first(conversation_ref)
        if not files:
            return 0
        try:
            return int(files[0].stat().st_mtime)
        except OSError:
            return 0

    @staticmethod
    def _read_file(path: Path) -> list[HistoryRecord]:
        records = []
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(HistoryRecord.model_validate_json(line))
                    except ValidationError:
                        logger.debug(f"Skipping malformed history line in {path}")
        except OSError as e:
            logger.warning(f"Could not read history file {path}: {e}")
        return records
