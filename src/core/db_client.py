"""SQLite database client wrapper with CRUD operations for the review ledger."""

import asyncio
import json
import logging
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings
from src.core.errors import StoreError


logger = logging.getLogger(__name__)


class DatabaseError(StoreError):
    """Ledger query or write failed."""


class RecordNotFoundError(DatabaseError, KeyError):
    """No ledger record with the requested id."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(value: Any) -> Any:  # noqa: ANN401
    """Serialise datetimes to ISO strings and containers to JSON text."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _now() -> str:
    return datetime.now(UTC).isoformat()


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return value.replace("%", "\\%").replace("_", "\\_")

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
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE '%' || ? || '%' ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        # Handle parenthesized OR groups
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate a `-field` / `field` sort spec into an ORDER BY clause body."""
    if not sort:
        return "id ASC"

    clauses = []
    for raw in sort.split(","):
        field = raw.strip()
        direction = "ASC"
        if field.startswith("-"):
            field, direction = field[1:], "DESC"
        elif field.startswith("+"):
            field = field[1:]
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        clauses.append(f"{field} {direction}")
    return ", ".join(clauses)


def _where(filter_query: str) -> tuple[str, list[Any]]:
    if not filter_query:
        return "", []
    where_clause, params = parse_filter(filter_query)
    return f"WHERE {where_clause}", params


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

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            if cache_key in _db_connections:
                conn = _db_connections.pop(cache_key)
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except aiosqlite.Error as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    schema = __import__("src.core.schema", fromlist=["init_db"])
    await schema.init_db(db_path=db_path)


def _raise_database_error(e: Exception, *, operation: str, collection: str) -> None:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        msg = f"Table '{collection}' does not exist. Call init_db() first."
        raise DatabaseError(msg) from e
    logger.error(f"{operation}_failed", extra={"collection": collection, "error": str(e)})
    msg = f"Failed to {operation.replace('_', ' ')} in {collection}: {e}"
    raise DatabaseError(msg) from e


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = _now()
        row = {"created": now, "updated": now, **data}
        columns = list(row.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(row[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        record_id = cursor.lastrowid
        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=str(record_id))
    except DatabaseError:
        raise
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="create_record", collection=collection)
        raise


async def create_records(*, collection: str, rows: list[dict[str, Any]]) -> int:
    """Insert many records with identical columns in one transaction.

    Returns:
        Number of rows actually inserted
    """
    if not rows:
        return 0

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = _now()
        prepared = [{"created": now, "updated": now, **row} for row in rows]
        columns = list(prepared[0].keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [[_to_db_value(row.get(key)) for key in columns] for row in prepared]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        try:
            cursor = await conn.executemany(query, values)
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise

        inserted = cursor.rowcount
        logger.info("Created records", extra={"collection": collection, "count": inserted})
        return inserted
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="create_records", collection=collection)
        raise


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="get_record", collection=collection)
        raise

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    columns = [description[0] for description in cursor.description]
    record = dict(zip(columns, row, strict=True))

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _convert_record_ids(record)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    # Surfaces RecordNotFoundError before writing
    await get_record(collection=collection, record_id=record_id)

    try:
        conn = await get_connection()

        row = {**data, "updated": _now()}
        set_clause = ", ".join(f"{key} = ?" for key in row)
        values = [_to_db_value(val) for val in row.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        await conn.execute(query, values)
        await conn.commit()

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="update_record", collection=collection)
        raise

    return await get_record(collection=collection, record_id=record_id)


async def update_record_if(*, collection: str, record_id: str, data: dict[str, Any], filter_query: str) -> bool:
    """Update a record only while it still matches the filter, in a single statement.

    Returns:
        True if this call updated the record, False if the filter no longer matched
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)
    if not filter_query:
        msg = "Conditional update requires a filter"
        raise ValueError(msg)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        row = {**data, "updated": _now()}
        set_clause = ", ".join(f"{key} = ?" for key in row)
        values = [_to_db_value(val) for val in row.values()]
        where_clause, params = parse_filter(filter_query)

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ? AND {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*values, int(record_id), *params])
        await conn.commit()
        updated = cursor.rowcount == 1

        logger.info(
            "Conditionally updated record",
            extra={"collection": collection, "record_id": record_id, "updated": updated},
        )
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="update_record_if", collection=collection)
        raise

    return updated


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    await get_record(collection=collection, record_id=record_id)

    try:
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        await conn.execute(query, (int(record_id),))
        await conn.commit()

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="delete_record", collection=collection)
        raise


async def delete_records(*, collection: str, filter_query: str) -> int:
    """Delete every record matching the filter and return how many were removed."""
    if not filter_query:
        msg = "Refusing to delete without a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = _where(filter_query)
        query = f"DELETE FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        await conn.commit()

        logger.info("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="delete_records", collection=collection)
        raise


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
    offset: int | None = None,
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination.

    ``offset`` takes precedence over ``page`` when given.
    """
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = _where(filter_query)
        order_by = parse_sort(sort)
        start = offset if offset is not None else (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*params, per_page, start])
        rows = await cursor.fetchall()

        columns = [description[0] for description in cursor.description]
        records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="list_records", collection=collection)
        raise


async def count_records(*, collection: str, filter_query: str = "") -> int:
    """Count records matching the filter."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = _where(filter_query)
        query = f"SELECT COUNT(*) FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(e, operation="count_records", collection=collection)
        raise


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None
