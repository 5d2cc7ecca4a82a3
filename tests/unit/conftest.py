"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime

import pytest

from src.core.config import Settings
from src.domain.reward import Reward
from src.domain.task import Frequency, Task
from src.services.ledger_service import Ledger
from src.services.notification_service import QueueNotifier
from src.services.session_service import SessionManager
from tests.unit.mocks import FakePocketBase, InMemoryLedgerStore, RecordingNotifier


OWNER_ID = "owner12345abcde"


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Provides a fresh InMemoryLedgerStore for each test."""
    return InMemoryLedgerStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ledger(store: InMemoryLedgerStore, notifier: RecordingNotifier) -> Ledger:
    """An empty ledger for OWNER_ID backed by the in-memory store."""
    return Ledger(owner_id=OWNER_ID, store=store, notifier=notifier)


@pytest.fixture
def fake_pocketbase() -> FakePocketBase:
    return FakePocketBase()


@pytest.fixture
def local_settings(tmp_path) -> Settings:
    """Settings for the local JSON backend rooted in a temp directory."""
    return Settings(
        storage_backend="local",
        local_store_dir=str(tmp_path / "ledgers"),
        anonymous_owner_id="anonymous",
        _env_file=None,
    )


@pytest.fixture
def local_sessions(local_settings: Settings) -> SessionManager:
    return SessionManager(config=local_settings, notifier=QueueNotifier(maxlen=20))


@pytest.fixture
def make_task():
    """Factory for tasks with sensible defaults.

    Usage:
        task = make_task(title="Read", points=20, completed=True)
    """

    def _make(**kwargs) -> Task:
        data = {
            "title": "Exercise",
            "description": "30 minutes",
            "frequency": Frequency.DAILY,
            "points": 10,
            "next_due": datetime(2024, 1, 2, 8, 0, tzinfo=UTC),
        }
        data.update(kwargs)
        return Task(**data)

    return _make


@pytest.fixture
def make_reward():
    """Factory for rewards with sensible defaults."""

    def _make(**kwargs) -> Reward:
        data = {"title": "Movie night", "description": "", "cost": 50}
        data.update(kwargs)
        return Reward(**data)

    return _make
