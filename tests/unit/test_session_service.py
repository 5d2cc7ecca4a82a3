"""Tests for session wiring: backend selection, identity switching and storage init."""

from unittest.mock import AsyncMock, patch

import pytest

from src.core import db_client
from src.core.config import Settings
from src.core.errors import AuthFailureError, BackendUnavailableError
from src.core.local_store import LocalJsonStore
from src.core.pocketbase_store import PocketBaseLedgerStore
from src.core.sqlite_store import SqliteLedgerStore
from src.services.auth_service import LocalAuthProvider, PocketBaseAuthProvider
from src.services.notification_service import QueueNotifier
from src.services.session_service import SessionManager
from tests.unit.mocks import InMemoryLedgerStore


@pytest.mark.unit
class TestBackendSelection:
    def test_local_backend(self, local_settings):
        sessions = SessionManager(config=local_settings)

        assert isinstance(sessions._store, LocalJsonStore)
        assert isinstance(sessions.auth, LocalAuthProvider)

    def test_injected_empty_notifier_is_kept(self, local_settings):
        notifier = QueueNotifier(maxlen=3)

        sessions = SessionManager(config=local_settings, notifier=notifier)

        assert sessions.notifier is notifier

    def test_sqlite_backend(self, tmp_path):
        config = Settings(storage_backend="sqlite", sqlite_db_path=str(tmp_path / "x.db"), _env_file=None)

        sessions = SessionManager(config=config)

        assert isinstance(sessions._store, SqliteLedgerStore)
        assert isinstance(sessions.auth, LocalAuthProvider)

    def test_pocketbase_backend_shares_one_client(self, fake_pocketbase):
        config = Settings(storage_backend="pocketbase", pocketbase_url="https://pb.example.com", _env_file=None)

        sessions = SessionManager(config=config, pocketbase_client=fake_pocketbase)

        assert isinstance(sessions._store, PocketBaseLedgerStore)
        assert isinstance(sessions.auth, PocketBaseAuthProvider)
        assert sessions.current_user is None


@pytest.mark.unit
class TestLedgerLifecycle:
    async def test_local_session_is_anonymous(self, local_sessions):
        ledger = await local_sessions.get_ledger()

        assert ledger.owner_id == "anonymous"
        assert local_sessions.current_user.anonymous is True

    async def test_ledger_is_cached_between_calls(self, local_sessions):
        first = await local_sessions.get_ledger()

        assert await local_sessions.get_ledger() is first

    async def test_notifications_reach_the_session_queue(self, local_sessions):
        ledger = await local_sessions.get_ledger()
        await ledger.create_task(title="Exercise")

        assert [n.title for n in local_sessions.notifier.drain()] == ["Task added!"]

    async def test_signed_out_pocketbase_session_has_no_ledger(self, fake_pocketbase):
        config = Settings(storage_backend="pocketbase", pocketbase_url="https://pb.example.com", _env_file=None)
        sessions = SessionManager(config=config, pocketbase_client=fake_pocketbase)

        with pytest.raises(AuthFailureError):
            await sessions.get_ledger()

    async def test_sign_in_switches_ledger_owner(self, fake_pocketbase):
        """Test each identity gets its own ledger and signing out drops it."""
        fake_pocketbase.records["users"] = {
            "user00000000001": {"id": "user00000000001", "email": "a@example.com", "name": "A", "password": "pw1234"},
            "user00000000002": {"id": "user00000000002", "email": "b@example.com", "name": "B", "password": "pw1234"},
        }
        store = InMemoryLedgerStore()
        config = Settings(storage_backend="pocketbase", pocketbase_url="https://pb.example.com", _env_file=None)
        sessions = SessionManager(
            config=config,
            store=store,
            auth=PocketBaseAuthProvider(fake_pocketbase),
            notifier=QueueNotifier(maxlen=10),
        )

        await sessions.sign_in("a@example.com", "pw1234")
        ledger_a = await sessions.get_ledger()
        await ledger_a.create_task(title="A's task")

        await sessions.sign_out()
        await sessions.sign_in("b@example.com", "pw1234")
        ledger_b = await sessions.get_ledger()

        assert ledger_a.owner_id == "user00000000001"
        assert ledger_b.owner_id == "user00000000002"
        assert ledger_b.tasks == []
        assert [t.title for t in store.stored_tasks("user00000000001")] == ["A's task"]


@pytest.mark.unit
class TestInitializeStorage:
    async def test_sqlite_init_clears_backend_unavailable(self, tmp_path):
        db_path = str(tmp_path / "ledger.db")
        config = Settings(storage_backend="sqlite", sqlite_db_path=db_path, _env_file=None)
        sessions = SessionManager(config=config, notifier=QueueNotifier(maxlen=10))
        try:
            with pytest.raises(BackendUnavailableError):
                await sessions.get_ledger()

            await sessions.initialize_storage()
            ledger = await sessions.get_ledger()

            assert ledger.tasks == []
        finally:
            await db_client.close_connection(db_path=db_path)

    async def test_pocketbase_init_syncs_schema(self, fake_pocketbase):
        config = Settings(
            storage_backend="pocketbase",
            pocketbase_url="https://pb.example.com",
            pocketbase_admin_email="admin@example.com",
            pocketbase_admin_password="adminpass",
            _env_file=None,
        )
        sessions = SessionManager(config=config, pocketbase_client=fake_pocketbase)

        with patch("src.services.session_service.schema.sync_schema", new=AsyncMock()) as sync:
            await sessions.initialize_storage()

        sync.assert_awaited_once_with(
            pocketbase_url="https://pb.example.com", admin_email="admin@example.com", admin_password="adminpass"
        )


@pytest.mark.unit
class TestBackendUnavailableNotice:
    async def test_repeated_loads_notify_once(self, local_settings):
        """Test every request fails while storage is missing, but the notice is queued once."""
        store = InMemoryLedgerStore()
        store.missing.add("tasks")
        sessions = SessionManager(config=local_settings, store=store, notifier=QueueNotifier(maxlen=10))

        for _ in range(3):
            with pytest.raises(BackendUnavailableError):
                await sessions.get_ledger()

        assert [n.title for n in sessions.notifier.drain()] == ["Storage has not been initialized."]

    async def test_notice_rearms_after_initialize_storage(self, local_settings):
        store = InMemoryLedgerStore()
        store.missing.add("tasks")
        sessions = SessionManager(config=local_settings, store=store, notifier=QueueNotifier(maxlen=10))
        with pytest.raises(BackendUnavailableError):
            await sessions.get_ledger()

        await sessions.initialize_storage()
        with pytest.raises(BackendUnavailableError):
            await sessions.get_ledger()

        assert len(sessions.notifier.drain()) == 2

    async def test_notice_rearms_after_successful_load(self, local_settings):
        store = InMemoryLedgerStore()
        store.missing.add("tasks")
        sessions = SessionManager(config=local_settings, store=store, notifier=QueueNotifier(maxlen=10))
        with pytest.raises(BackendUnavailableError):
            await sessions.get_ledger()

        store.missing.clear()
        await sessions.get_ledger()
        await sessions.sign_out()
        store.missing.add("tasks")
        with pytest.raises(BackendUnavailableError):
            await sessions.get_ledger()

        assert len(sessions.notifier.drain()) == 2
