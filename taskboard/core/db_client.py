"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from taskboard.core import schema
from taskboard.core.change_feed import change_feed
from taskboard.core.config import constants, settings
from taskboard.core.errors import DuplicateRecordError


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_COMPARISON = re.compile(r'^(\w+)\s*(\?=|!=|>=|<=|=|>|<|~)\s*"((?:[^"\\]|\\.)*)"$')


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER.match(collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _quote(field: str) -> str:
    """Quote a field name for use as a SQL identifier ("order" is a keyword)."""
    if not _IDENTIFIER.match(field):
        msg = f"Invalid field name: {field}"
        raise ValueError(msg)
    return f'"{field}"'


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in a double-quoted filter value via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _encode_value(value: Any) -> Any:  # noqa: ANN401
    """Encode a Python value for storage in SQLite."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, set | frozenset):
        return json.dumps(sorted(value))
    if isinstance(value, dict | list | tuple):
        return json.dumps(value)
    return value


def _row_to_record(collection: str, columns: list[str], row: tuple[Any, ...]) -> dict[str, Any]:
    """Build a decoded record dict from a result row."""
    record = dict(zip(columns, row, strict=True))
    return schema.decode_record(collection, _convert_record_ids(record))


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str) -> str | bool:
    """Parse a filter value, mapping boolean literals to Python bools.

    Other values stay strings; SQLite column affinity converts them for
    INTEGER columns.
    """
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    return value


def split_top_level(expression: str, separator: str) -> list[str]:
    """Split an expression on a separator that is outside quotes and parentheses."""
    parts = []
    current = ""
    paren_depth = 0
    in_quotes = False
    escaped = False
    index = 0

    while index < len(expression):
        char = expression[index]
        if in_quotes:
            current += char
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_quotes = False
            index += 1
            continue

        if char == '"':
            in_quotes = True
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        if paren_depth == 0 and expression.startswith(separator, index):
            parts.append(current.strip())
            current = ""
            index += len(separator)
            continue

        current += char
        index += 1

    if in_quotes or paren_depth != 0:
        msg = f"Invalid filter syntax: {expression}"
        raise ValueError(msg)

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_comparison(comparison: str) -> tuple[str, str, str | bool]:
    """Parse `field op "value"` into (field, operator, value)."""
    match = _COMPARISON.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, raw_value = match.group(1), match.group(2), match.group(3)
    value = json.loads(f'"{raw_value}"')
    return field, op, value if op == "~" else _parse_value(value)


def _comparison_to_sql(comparison: str) -> tuple[str, str | bool]:
    """Translate a single comparison into a SQL condition and parameter."""
    field, op, value = parse_comparison(comparison)
    column = _quote(field)

    if op == "?=":
        return f"EXISTS (SELECT 1 FROM json_each({column}) WHERE json_each.value = ?)", value
    if op == "~":
        escaped = str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"{column} LIKE ? ESCAPE '\\'", f"%{escaped}%"
    return f"{column} {op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | bool]]:
    """Parse a parenthesized OR group (the "in" filter) into a SQL condition and parameters."""
    or_parts = split_top_level(or_group[1:-1], "||")
    if len(or_parts) > constants.MAX_IN_FILTER_VALUES:
        msg = (
            f"Filter group has {len(or_parts)} alternatives; "
            f"at most {constants.MAX_IN_FILTER_VALUES} are allowed per query"
        )
        raise ValueError(msg)

    or_conditions = []
    or_params = []
    for part in or_parts:
        cond, value = _comparison_to_sql(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def parse_filter(filter_query: str) -> tuple[str, list[str | bool]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports `field op "value"` comparisons with =, !=, >, <, >=, <=, ~ (contains)
    and ?= (array contains), joined by &&, plus parenthesized || groups.
    """
    if not filter_query:
        return "", []

    conditions = []
    params: list[str | bool] = []

    for part in split_top_level(filter_query, "&&"):
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _comparison_to_sql(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate "+field", "-field" or "field ASC|DESC" into an ORDER BY clause.

    Ties are always broken by id so result order is deterministic.
    """
    if not sort:
        return "id ASC"

    match = re.match(r"^([+-]?)([A-Za-z_][A-Za-z0-9_]*)\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE)
    if not match:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"

    prefix, field, direction = match.group(1), match.group(2), match.group(3)
    if direction is None:
        direction = "DESC" if prefix == "-" else "ASC"
    if field == "id":
        return f"id {direction.upper()}"
    return f"{_quote(field)} {direction.upper()}, id ASC"


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
        logger.info("Closed SQLite connection", extra={"thread_id": thread_id, "db_path": str(path)})
    except Exception as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "thread_id": thread_id})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.create_tables()."""
    conn = await get_connection(db_path=db_path)
    await schema.create_tables(conn)


def _wrap_error(e: Exception, *, collection: str, action: str) -> RuntimeError:
    """Translate a driver error into the RuntimeError surfaced to callers."""
    if isinstance(e, aiosqlite.IntegrityError) and "UNIQUE" in str(e):
        logger.warning("Unique constraint violated", extra={"collection": collection, "error": str(e)})
        return DuplicateRecordError(f"Duplicate value in {collection}: {e}")
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        return RuntimeError(f"Table '{collection}' does not exist. Call init_db() first.")
    logger.error(f"{action}_failed", extra={"collection": collection, "error": str(e)})
    return RuntimeError(f"Failed to {action.replace('_', ' ')} in {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    columns_str = ", ".join(_quote(key) for key in data)
    placeholders_str = ", ".join("?" for _ in data)
    values = [_encode_value(val) for val in data.values()]

    try:
        conn = await get_connection()
        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="create_record") from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising KeyError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="get_record") from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    return _row_to_record(collection, columns, row)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Merge the given fields into a record and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    set_clause = ", ".join(f"{_quote(key)} = ?" for key in data)
    values = [_encode_value(val) for val in data.values()]
    values.append(int(record_id))

    try:
        conn = await get_connection()
        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="update_record") from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising KeyError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    try:
        conn = await get_connection()
        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        await conn.commit()
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="delete_record") from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)


async def upsert_record(*, collection: str, key_field: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a record, or merge the given fields into the record sharing its unique key."""
    _validate_collection_name(collection)
    if key_field not in schema.UNIQUE_KEYS.get(collection, set()) or key_field not in data:
        msg = f"{key_field} is not a unique key of {collection}"
        raise ValueError(msg)

    columns_str = ", ".join(_quote(key) for key in data)
    placeholders_str = ", ".join("?" for _ in data)
    update_clause = ", ".join(f"{_quote(key)} = excluded.{_quote(key)}" for key in data if key != key_field)
    values = [_encode_value(val) for val in data.values()]

    try:
        conn = await get_connection()
        query = (
            f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) "  # noqa: S608 - names are validated
            f"ON CONFLICT({_quote(key_field)}) DO UPDATE SET {update_clause}"
        )
        await conn.execute(query, values)
        await conn.commit()
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="upsert_record") from e

    logger.info("Upserted record", extra={"collection": collection, "key_field": key_field})
    change_feed.publish(collection)

    record = await get_first_record(
        collection=collection,
        filter_query=f'{key_field} = "{sanitize_param(data[key_field])}"',
    )
    if record is None:
        msg = f"Upserted record vanished from {collection}"
        raise RuntimeError(msg)
    return record


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)

    where_clause = ""
    params: list[Any] = []
    if filter_query:
        where_clause, params = parse_filter(filter_query)
        where_clause = f"WHERE {where_clause}"

    order_clause = parse_sort(sort)
    offset = (page - 1) * per_page

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_clause} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*params, per_page, offset])
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except Exception as e:
        raise _wrap_error(e, collection=collection, action="list_records") from e

    records = [_row_to_record(collection, columns, row) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_full_list(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Return every record matching the filter, reading page by page."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < constants.DEFAULT_PER_PAGE_LIMIT:
            return records
        page += 1


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None
