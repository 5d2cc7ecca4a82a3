"""Session service: wires the store, ledger and auth provider for the current identity."""

import logging

from pocketbase import PocketBase

from src.core import schema
from src.core.config import Settings, settings as default_settings
from src.core.errors import AuthFailureError, BackendUnavailableError
from src.core.local_store import LocalJsonStore
from src.core.logging import span
from src.core.pocketbase_store import PocketBaseLedgerStore
from src.core.sqlite_store import SqliteLedgerStore
from src.core.storage import LedgerStore
from src.domain.user import Identity
from src.services.auth_service import AuthProvider, LocalAuthProvider, PocketBaseAuthProvider
from src.services.ledger_service import Ledger
from src.services.notification_service import QueueNotifier


logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the active identity and its ledger.

    Exactly one ledger is live at a time. Signing in replaces it; signing out
    drops it from memory (its state stays in storage).
    """

    def __init__(
        self,
        *,
        config: Settings | None = None,
        store: LedgerStore | None = None,
        auth: AuthProvider | None = None,
        notifier: QueueNotifier | None = None,
        pocketbase_client: PocketBase | None = None,
    ) -> None:
        self._settings = config or default_settings
        self._pocketbase = pocketbase_client
        if self._settings.storage_backend == "pocketbase" and self._pocketbase is None and (store is None or auth is None):
            self._settings.warn_if_placeholder_backend()
            self._pocketbase = PocketBase(self._settings.pocketbase_url)
        self._store = store or self._build_store()
        self._auth = auth or self._build_auth()
        if notifier is None:
            notifier = QueueNotifier(maxlen=self._settings.notification_queue_size)
        self.notifier = notifier
        self._ledger: Ledger | None = None
        # Set once the user was told storage is uninitialized; survives failed loads
        self._backend_warning_sent = False

    def _build_store(self) -> LedgerStore:
        backend = self._settings.storage_backend
        if backend == "pocketbase":
            return PocketBaseLedgerStore(self._pocketbase)
        if backend == "sqlite":
            return SqliteLedgerStore(self._settings.sqlite_db_path)
        return LocalJsonStore(self._settings.local_store_dir)

    def _build_auth(self) -> AuthProvider:
        if self._settings.storage_backend == "pocketbase":
            return PocketBaseAuthProvider(self._pocketbase)
        return LocalAuthProvider()

    @property
    def auth(self) -> AuthProvider:
        return self._auth

    @property
    def current_user(self) -> Identity | None:
        return self._auth.current_user

    async def get_ledger(self) -> Ledger:
        """Return the ledger of the current identity, loading it on first use.

        Raises:
            AuthFailureError: If nobody is signed in
            BackendUnavailableError: If storage was never initialized
            TransientStorageError: If loading failed
        """
        identity = self._auth.current_user
        if identity is None:
            raise AuthFailureError("Please sign in to continue.")

        if self._ledger is None or self._ledger.owner_id != identity.id:
            with span("session_service.load_ledger"):
                try:
                    self._ledger = await Ledger.load(
                        owner_id=identity.id,
                        store=self._store,
                        notifier=self.notifier,
                        backend_warning_sent=self._backend_warning_sent,
                    )
                except BackendUnavailableError:
                    self._backend_warning_sent = True
                    raise
                self._backend_warning_sent = False
                logger.info("Session ledger ready", extra={"owner_id": identity.id})
        return self._ledger

    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate and discard any ledger held for a previous identity."""
        identity = await self._auth.sign_in(email, password)
        self._ledger = None
        self.notifier.notify("Signed in!", "Welcome back!")
        return identity

    async def sign_up(self, email: str, password: str, name: str, password_confirm: str | None = None) -> Identity:
        """Register a new account."""
        identity = await self._auth.sign_up(email, password, name, password_confirm)
        self.notifier.notify("Account created!", "Check your email to confirm your account.")
        return identity

    async def sign_out(self) -> None:
        """Forget the current identity and its in-memory ledger."""
        await self._auth.sign_out()
        self._ledger = None

    async def initialize_storage(self) -> None:
        """Create the backend's tables/collections, then reload the ledger on next use."""
        backend = self._settings.storage_backend
        with span("session_service.initialize_storage"):
            if backend == "sqlite":
                await schema.init_db(db_path=self._settings.sqlite_db_path)
            elif backend == "pocketbase":
                await schema.sync_schema(
                    pocketbase_url=self._settings.pocketbase_url,
                    admin_email=self._settings.pocketbase_admin_email,
                    admin_password=self._settings.pocketbase_admin_password,
                )
            else:
                logger.info("Local storage needs no initialization")
            self._ledger = None
            self._backend_warning_sent = False
