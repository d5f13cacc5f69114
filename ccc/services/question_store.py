"""Pending multiple-choice questions, per session."""

import logging
import threading

from ccc.models.question import PendingQuestion

logger = logging.getLogger(__name__)


class QuestionStore:
    """Holds the questions the agent is currently waiting on.

    Filled from the question hook, drained by the `answer` command.
    """

    def __init__(self):
        self._questions: dict[str, list[PendingQuestion]] = {}
        self._lock = threading.Lock()

    def set(self, session_name: str, questions: list[PendingQuestion]) -> None:
        """Replace the pending questions for a session."""
        with self._lock:
            if questions:
                self._questions[session_name] = list(questions)
            else:
                self._questions.pop(session_name, None)
        logger.debug(f"{len(questions)} pending question(s) for {session_name}")

    def get(self, session_name: str) -> list[PendingQuestion]:
        with self._lock:
            return list(self._questions.get(session_name, []))

    def remove(self, session_name: str, index: int) -> PendingQuestion | None:
        """Drop one answered question; returns it, or None if out of range."""
        with self._lock:
            questions = self._questions.get(session_name, [])
            if not 0 <= index < len(questions):
                return None
            question = questions.pop(index)
            if not questions:
                self._questions.pop(session_name, None)
            return question

    def clear(self, session_name: str) -> None:
        with self._lock:
            self._questions.pop(session_name, None)

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._questions)
