"""Pytest configuration and shared fixtures for ccc tests."""

from unittest.mock import MagicMock

import pytest
from fakes import FakeBackend

from ccc.backends import reset_local_backend
from ccc.models import AppConfig, SessionConfig, TimingConfig
from ccc.services.config_service import ConfigService, reset_config_service
from ccc.services.event_bus import EventBus, reset_event_bus
from ccc.services.history_store import HistoryStore
from ccc.services.session_lifecycle import SessionLifecycleManager


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module-level singletons around every test."""
    reset_config_service()
    reset_event_bus()
    reset_local_backend()
    yield
    reset_config_service()
    reset_event_bus()
    reset_local_backend()


@pytest.fixture
def fast_timing():
    """Timing with every wait zeroed and generous ceilings."""
    return TimingConfig(
        poll_interval=0,
        ask_timeout=30,
        ask_warmup=0,
        capture_interval=0,
        capture_timeout=30,
        capture_warmup=0,
        settle_delay=0,
        restart_wait=0,
        paste_delay=0,
        extract_retry_delay=0,
        transcript_delay=0,
        typing_check_interval=0.01,
        typing_signal_interval=0.01,
        typing_max_duration=5,
        subscribe_interval=0.05,
    )


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "projects" / "proj"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def app_config(tmp_path, project_dir, fast_timing):
    """One linked local session, one unlinked, one remote."""
    return AppConfig(
        sessions={
            "proj": SessionConfig(conversation_ref=42, path=str(project_dir)),
            "scratch": SessionConfig(conversation_ref=0, path=str(tmp_path / "scratch")),
            "box:api": SessionConfig(conversation_ref=7, path="~/work/api", host="box"),
        },
        hosts={"box": {"address": "dev@box.local", "projects_dir": "~/work"}},
        projects_dir=str(tmp_path / "projects"),
        history_dir=str(tmp_path / "history"),
        timing=fast_timing,
    )


@pytest.fixture
def config_service(tmp_path, app_config):
    """ConfigService backed by a config.yaml in tmp_path."""
    service = ConfigService(tmp_path / "config.yaml")
    service.save(app_config)
    return service


@pytest.fixture
def backend():
    """Fake transport with the linked local session already running."""
    fake = FakeBackend()
    fake.add_session("claude-proj")
    return fake


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def history(tmp_path, event_bus):
    return HistoryStore(tmp_path / "history", event_bus=event_bus)


@pytest.fixture
def notifier():
    """Stand-in for the chat notifier."""
    return MagicMock()


@pytest.fixture
def lifecycle(config_service, backend, notifier):
    """Lifecycle manager wired to the fake backend with no real sleeps."""
    return SessionLifecycleManager(
        config_service,
        notifier=notifier,
        backend_factory=lambda config, name: backend,
        sleep=lambda seconds: None,
    )
