"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

import aiosqlite

from src.core.config import settings
from src.core.errors import BackendUnavailableError, NotFoundError, TransientStorageError


logger = logging.getLogger(__name__)


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter expressions via json.dumps."""
    return json.dumps(str(value))[1:-1]


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _is_missing_table(error: Exception) -> bool:
    return isinstance(error, aiosqlite.OperationalError) and "no such table" in str(error)


def _raise_storage_error(*, operation: str, collection: str, error: Exception) -> NoReturn:
    """Translate a driver error into the storage error taxonomy."""
    if _is_missing_table(error):
        logger.error("Table not found", extra={"collection": collection})
        msg = f"Table '{collection}' does not exist. Call init_db() first."
        raise BackendUnavailableError(msg) from error
    logger.error(f"{operation}_failed", extra={"collection": collection, "error": str(error)})
    msg = f"Failed to {operation.replace('_', ' ')} in {collection}: {error}"
    raise TransientStorageError(msg) from error


def _to_db_value(val: Any) -> Any:
    if isinstance(val, datetime):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def _parse_value(value: str) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(=|!=|>=|<=|>|<)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    value = _parse_value(raw_value)

    return f"{field} {sql_op} ?", value


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse `field = "value" && other = "value"` syntax into a SQL WHERE clause and parameters."""
    if not filter_query:
        return "", []

    conditions = []
    params = []
    for raw_part in filter_query.split("&&"):
        cond, value = _parse_single_comparison(raw_part.strip())
        conditions.append(cond)
        params.append(value)

    return " AND ".join(conditions), params


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": str(path)})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def create_record(*, collection: str, data: dict[str, Any], db_path: str | None = None) -> dict[str, Any]:
    """Insert a new record (the caller supplies the id) and return it."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection(db_path=db_path)

        columns = list(data.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        _raise_storage_error(operation="create_record", collection=collection, error=e)

    logger.info("Created record", extra={"collection": collection, "record_id": data.get("id")})
    return await get_record(collection=collection, record_id=str(data["id"]), db_path=db_path)


async def get_record(*, collection: str, record_id: str, db_path: str | None = None) -> dict[str, Any]:
    """Fetch a single record by ID, raising NotFoundError if not found."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection(db_path=db_path)

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except aiosqlite.Error as e:
        _raise_storage_error(operation="get_record", collection=collection, error=e)

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise NotFoundError(msg)

    return dict(zip(columns, row, strict=True))


async def update_record(
    *, collection: str, record_id: str, data: dict[str, Any], db_path: str | None = None
) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    try:
        conn = await get_connection(db_path=db_path)

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()]
        values.append(record_id)

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        _raise_storage_error(operation="update_record", collection=collection, error=e)

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise NotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id, db_path=db_path)


async def list_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    db_path: str | None = None,
) -> list[dict[str, Any]]:
    """List records with optional filtering and sorting."""
    _validate_collection_name(collection)

    where_clause = ""
    params: list[Any] = []
    if filter_query:
        where_clause, params = parse_filter(filter_query)
        where_clause = f"WHERE {where_clause}"

    # Only allow: column_name [ASC|DESC]
    safe_sort = "rowid ASC"
    if sort:
        if re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE):
            safe_sort = sort.strip()
        else:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

    try:
        conn = await get_connection(db_path=db_path)
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except aiosqlite.Error as e:
        _raise_storage_error(operation="list_records", collection=collection, error=e)

    records = [dict(zip(columns, row, strict=True)) for row in rows]
    logger.info("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(
    *, collection: str, filter_query: str, db_path: str | None = None
) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, db_path=db_path)
    return records[0] if records else None
