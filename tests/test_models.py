"""Tests for domain models."""

import json

import pytest

from ccc.models import (
    AgentState,
    AppConfig,
    ControlEvent,
    ControlRequest,
    ControlResponse,
    HistoryRecord,
    PendingQuestion,
    Sender,
    SessionConfig,
    SessionStatus,
)
from ccc.models.config import expand_path


class TestHistoryRecord:
    """Tests for HistoryRecord model."""

    def test_parses_on_disk_aliases(self):
        """Short on-disk field names populate the model."""
        record = HistoryRecord.model_validate_json(
            '{"id": 3, "ts": 1700000000, "from": "human", "text": "hi", "type": "voice", "path": "/tmp/a.ogg"}'
        )
        assert record.id == 3
        assert record.timestamp == 1700000000
        assert record.sender == Sender.HUMAN
        assert record.media_kind == "voice"
        assert record.media_path == "/tmp/a.ogg"

    def test_legacy_claude_sender(self):
        """Older logs used "claude" for agent output."""
        record = HistoryRecord.model_validate({"id": 1, "from": "claude", "text": "ok"})
        assert record.sender == Sender.ASSISTANT

    def test_to_json_dict_uses_aliases_and_drops_none(self):
        """Serialized form matches the on-disk layout."""
        record = HistoryRecord(id=5, timestamp=10, sender=Sender.API, text="run", agent="ci")
        data = record.to_json_dict()

        assert data == {"id": 5, "ts": 10, "from": "api", "text": "run", "agent": "ci"}

    def test_rejects_unknown_sender(self):
        """Unknown senders are a validation error."""
        with pytest.raises(ValueError):
            HistoryRecord.model_validate({"id": 1, "from": "robot"})


class TestControlRequest:
    """Tests for ControlRequest parsing."""

    def test_from_alias(self):
        """The caller label arrives as "from"."""
        request = ControlRequest.model_validate({"cmd": "send", "from": "ci-bot"})
        assert request.sender == "ci-bot"

    def test_defaults(self):
        """Missing fields fall back to empty values."""
        request = ControlRequest.model_validate({"cmd": "history"})
        assert request.session == ""
        assert request.after == 0
        assert request.limit == 0
        assert request.sessions == []
        assert request.option_index is None

    def test_ignores_unknown_fields(self):
        """Extra keys do not fail validation."""
        request = ControlRequest.model_validate({"cmd": "ping", "trace_id": "x"})
        assert request.cmd == "ping"


class TestControlResponse:
    """Tests for ControlResponse wire form."""

    def test_failure(self):
        """Failures carry ok=false and the error only."""
        assert ControlResponse.failure("session not found").to_wire() == {
            "ok": False,
            "error": "session not found",
        }

    def test_omits_empty_fields(self):
        """Unset fields are left out of the frame."""
        wire = ControlResponse(ok=True, message_id=9).to_wire()
        assert wire == {"ok": True, "message_id": 9}

    def test_messages_serialized_with_aliases(self):
        """History messages keep their on-disk field names."""
        record = HistoryRecord(id=1, timestamp=2, sender=Sender.ASSISTANT, text="done")
        wire = ControlResponse(ok=True, messages=[record]).to_wire()

        assert wire["messages"][0]["from"] == "assistant"
        json.dumps(wire)


class TestControlEvent:
    """Tests for ControlEvent."""

    def test_message_event(self):
        """Message events carry from and text."""
        event = ControlEvent(event="message", session="proj", sender="human", text="hi")
        assert event.to_wire() == {
            "event": "message",
            "session": "proj",
            "from": "human",
            "text": "hi",
        }


class TestSessionStatus:
    """Tests for mapping agent state to reported status."""

    @pytest.mark.parametrize(
        "state,status",
        [
            (AgentState.BUSY, SessionStatus.ACTIVE),
            (AgentState.IDLE, SessionStatus.IDLE),
            (AgentState.UNKNOWN, SessionStatus.IDLE),
            (AgentState.ABSENT, SessionStatus.STOPPED),
            (AgentState.STARTING, SessionStatus.STARTING),
        ],
    )
    def test_from_agent_state(self, state, status):
        """Each agent state maps to one status."""
        assert SessionStatus.from_agent_state(state) == status


class TestPendingQuestion:
    """Tests for PendingQuestion."""

    def test_parses_hook_payload(self):
        """AskUserQuestion payloads use camelCase multiSelect."""
        question = PendingQuestion.model_validate(
            {
                "question": "Which database?",
                "header": "DB",
                "multiSelect": True,
                "options": [{"label": "Postgres"}, {"label": "SQLite", "description": "file"}],
            }
        )
        assert question.multi_select is True
        assert [o.label for o in question.options] == ["Postgres", "SQLite"]
        assert question.options[1].description == "file"


class TestAppConfig:
    """Tests for AppConfig helpers."""

    def test_active_sessions_excludes_deleted(self):
        """Soft-deleted sessions are hidden."""
        config = AppConfig(
            sessions={
                "a": SessionConfig(conversation_ref=1),
                "b": SessionConfig(conversation_ref=2, deleted=True),
            }
        )
        assert list(config.active_sessions()) == ["a"]

    def test_host_address(self):
        """Known hosts resolve to their SSH address."""
        config = AppConfig(hosts={"box": {"address": "me@box"}})
        assert config.host_address("box") == "me@box"
        assert config.host_address("other") == ""
        assert config.host_address("") == ""

    def test_resolve_project_path(self, tmp_path):
        """Bare names resolve under projects_dir; paths pass through."""
        config = AppConfig(projects_dir=str(tmp_path))
        assert config.resolve_project_path("web") == str(tmp_path / "web")
        assert config.resolve_project_path("/srv/web") == "/srv/web"
        assert config.resolve_project_path("~/web") == expand_path("~/web")

    def test_remote_projects_dir_defaults_to_home(self):
        """Hosts without projects_dir use the remote home."""
        config = AppConfig(hosts={"box": {"address": "me@box"}})
        assert config.resolved_projects_dir("box") == "~"
