"""Storage schema management (code-first) for SQLite tables and PocketBase collections.

Both entry points are idempotent and act as the "initialize storage" step that
clears a BackendUnavailableError.
"""

import logging
from typing import Any

import httpx
from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from src.core import db_client
from src.core.config import constants, settings
from src.core.errors import TransientStorageError


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = ["tasks", "rewards", "profiles"]


SQLITE_TABLES: dict[str, str] = {
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id             TEXT    PRIMARY KEY,
            owner          TEXT    NOT NULL,
            title          TEXT    NOT NULL,
            description    TEXT    NOT NULL DEFAULT '',
            frequency      TEXT    NOT NULL DEFAULT 'daily',
            points         INTEGER NOT NULL,
            completed      INTEGER NOT NULL DEFAULT 0,
            last_completed TEXT,
            next_due       TEXT    NOT NULL
        )
    """,
    "rewards": """
        CREATE TABLE IF NOT EXISTS rewards (
            id          TEXT    PRIMARY KEY,
            owner       TEXT    NOT NULL,
            title       TEXT    NOT NULL,
            description TEXT    NOT NULL DEFAULT '',
            cost        INTEGER NOT NULL,
            claimed     INTEGER NOT NULL DEFAULT 0
        )
    """,
    "profiles": """
        CREATE TABLE IF NOT EXISTS profiles (
            id           TEXT    PRIMARY KEY,
            total_points INTEGER NOT NULL DEFAULT 0 CHECK (total_points >= 0)
        )
    """,
}

SQLITE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks (owner)",
    "CREATE INDEX IF NOT EXISTS idx_rewards_owner ON rewards (owner)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create the SQLite tables and indexes if they do not exist."""
    conn = await db_client.get_connection(db_path=db_path)
    for table_name, ddl in SQLITE_TABLES.items():
        await conn.execute(ddl)
        logger.debug("Ensured table %s", table_name)
    for index in SQLITE_INDEXES:
        await conn.execute(index)
    await conn.commit()
    logger.info("SQLite schema initialized", extra={"db_path": str(db_client.get_db_path(db_path))})


# Records are scoped to their owner; only the signed-in owner can see or change them.
_OWNER_RULE = "owner = @request.auth.id"


def _get_collection_schema(*, collection_name: str) -> dict[str, Any]:
    """Get the expected PocketBase schema for a collection.

    PocketBase v0.22+ uses 'fields' instead of 'schema' for field definitions.
    Timestamps are kept as text so the stored ISO 8601 strings round-trip exactly.
    """
    owner_field = {"name": "owner", "type": "text", "required": True}
    schemas = {
        "tasks": {
            "name": "tasks",
            "type": "base",
            "listRule": _OWNER_RULE,
            "viewRule": _OWNER_RULE,
            "createRule": '@request.auth.id != ""',
            "updateRule": _OWNER_RULE,
            "deleteRule": None,
            "fields": [
                owner_field,
                {"name": "title", "type": "text", "required": True},
                {"name": "description", "type": "text", "required": False},
                {
                    "name": "frequency",
                    "type": "select",
                    "required": True,
                    "values": ["daily", "weekly", "monthly"],
                    "maxSelect": 1,
                },
                {"name": "points", "type": "number", "required": True, "min": 1, "onlyInt": True},
                {"name": "completed", "type": "bool", "required": False},
                {"name": "last_completed", "type": "text", "required": False},
                {"name": "next_due", "type": "text", "required": True},
            ],
            "indexes": ["CREATE INDEX idx_tasks_owner ON tasks (owner)"],
        },
        "rewards": {
            "name": "rewards",
            "type": "base",
            "listRule": _OWNER_RULE,
            "viewRule": _OWNER_RULE,
            "createRule": '@request.auth.id != ""',
            "updateRule": _OWNER_RULE,
            "deleteRule": None,
            "fields": [
                owner_field,
                {"name": "title", "type": "text", "required": True},
                {"name": "description", "type": "text", "required": False},
                {"name": "cost", "type": "number", "required": True, "min": 1, "onlyInt": True},
                {"name": "claimed", "type": "bool", "required": False},
            ],
            "indexes": ["CREATE INDEX idx_rewards_owner ON rewards (owner)"],
        },
        "profiles": {
            "name": "profiles",
            "type": "base",
            "listRule": _OWNER_RULE,
            "viewRule": _OWNER_RULE,
            "createRule": '@request.auth.id != ""',
            "updateRule": _OWNER_RULE,
            "deleteRule": None,
            "fields": [
                owner_field,
                {"name": "total_points", "type": "number", "required": False, "min": 0, "onlyInt": True},
            ],
            "indexes": ["CREATE UNIQUE INDEX idx_profiles_owner ON profiles (owner)"],
        },
    }
    return schemas[collection_name]


async def _collection_exists(*, client: httpx.AsyncClient, collection_name: str) -> bool:
    """Check if a collection exists in PocketBase."""
    try:
        response = await client.get(f"/api/collections/{collection_name}")
        return response.is_success
    except httpx.HTTPError:
        return False


async def _create_collection(*, client: httpx.AsyncClient, schema: dict[str, Any]) -> None:
    """Create a new collection in PocketBase."""
    response = await client.post("/api/collections", json=schema)
    response.raise_for_status()
    logger.info("Created collection: %s", schema["name"])


async def _update_collection(*, client: httpx.AsyncClient, collection_name: str, schema: dict[str, Any]) -> None:
    """Add any fields missing from an existing collection, keeping the rest as-is."""
    response = await client.get(f"/api/collections/{collection_name}")
    response.raise_for_status()
    current = response.json()

    existing_names = {f["name"] for f in current.get("fields", [])}
    fields_added = [f for f in schema["fields"] if f["name"] not in existing_names]
    if not fields_added:
        logger.info("Collection %s schema is already up to date", collection_name)
        return

    payload = {"fields": [*current.get("fields", []), *fields_added]}
    response = await client.patch(f"/api/collections/{collection_name}", json=payload)
    response.raise_for_status()
    logger.info("Updated collection %s: added %s", collection_name, [f["name"] for f in fields_added])


async def sync_schema(
    pocketbase_url: str | None = None,
    admin_email: str | None = None,
    admin_password: str | None = None,
) -> None:
    """Sync PocketBase collections with the ledger schema (idempotent).

    Args:
        pocketbase_url: Optional PocketBase URL. If not provided, uses settings.pocketbase_url.
        admin_email: Admin email; defaults to settings.pocketbase_admin_email.
        admin_password: Admin password; defaults to settings.pocketbase_admin_password.

    Raises:
        ValueError: If admin credentials are not configured
        TransientStorageError: If PocketBase rejects the admin login or a schema request
    """
    logger.info("Starting PocketBase schema sync...")

    url = pocketbase_url or settings.pocketbase_url
    email = admin_email or settings.require_credential("pocketbase_admin_email", "PocketBase admin")
    password = admin_password or settings.require_credential("pocketbase_admin_password", "PocketBase admin")
    client = PocketBase(url)

    try:
        client.admins.auth_with_password(email, password)
        logger.info("Successfully authenticated as admin")
    except ClientResponseError as e:
        logger.error(f"Failed to authenticate as admin: {e}")
        msg = f"PocketBase admin authentication failed: {e}"
        raise TransientStorageError(msg) from e

    # Use httpx with the auth token from PocketBase SDK
    try:
        async with httpx.AsyncClient(base_url=url, timeout=constants.API_TIMEOUT_SECONDS) as http_client:
            http_client.headers["Authorization"] = f"Bearer {client.auth_store.token}"

            for collection_name in COLLECTIONS:
                schema = _get_collection_schema(collection_name=collection_name)
                if not await _collection_exists(client=http_client, collection_name=collection_name):
                    await _create_collection(client=http_client, schema=schema)
                else:
                    await _update_collection(client=http_client, collection_name=collection_name, schema=schema)
    except httpx.HTTPError as e:
        logger.error("schema_sync_failed", extra={"error": str(e)})
        msg = f"PocketBase schema sync failed: {e}"
        raise TransientStorageError(msg) from e

    logger.info("PocketBase schema sync complete")
