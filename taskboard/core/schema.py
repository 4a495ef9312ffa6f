"""SQLite schema management (code-first approach)."""

import json
import logging
from typing import Any

import aiosqlite


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "categories",
    "tasks",
]

# Fields stored as JSON text and decoded back to Python lists
JSON_FIELDS: dict[str, set[str]] = {
    "categories": {"members"},
}

# Fields stored as INTEGER 0/1 and decoded back to bool
BOOL_FIELDS: dict[str, set[str]] = {
    "categories": {"is_shared"},
    "tasks": {"completed"},
}

# Unique keys usable with db_client.upsert_record
UNIQUE_KEYS: dict[str, set[str]] = {
    "users": {"uid"},
}

# Fields backed by a UNIQUE index; NULL values never collide
UNIQUE_FIELDS: dict[str, set[str]] = {
    "users": {"uid"},
    "categories": {"share_code"},
}


def _get_collection_schema(*, collection_name: str) -> dict[str, Any]:
    """Get the table definition for a collection."""
    schemas: dict[str, dict[str, Any]] = {
        "users": {
            "columns": [
                '"uid" TEXT NOT NULL',
                '"name" TEXT NOT NULL',
                '"email" TEXT',
                '"photo_url" TEXT',
                '"last_login" TEXT',
            ],
            "indexes": ['CREATE UNIQUE INDEX IF NOT EXISTS idx_users_uid ON users ("uid")'],
        },
        "categories": {
            "columns": [
                '"owner_id" TEXT NOT NULL',
                '"name" TEXT NOT NULL',
                '"order" INTEGER NOT NULL DEFAULT 0',
                '"created_at" TEXT NOT NULL',
                '"is_shared" INTEGER NOT NULL DEFAULT 0',
                '"share_code" TEXT',
                '"members" TEXT',
            ],
            "indexes": [
                'CREATE INDEX IF NOT EXISTS idx_categories_owner ON categories ("owner_id")',
                'CREATE UNIQUE INDEX IF NOT EXISTS idx_categories_share_code ON categories ("share_code")',
            ],
        },
        "tasks": {
            "columns": [
                '"owner_id" TEXT NOT NULL',
                '"category_id" TEXT NOT NULL',
                '"title" TEXT NOT NULL',
                '"completed" INTEGER NOT NULL DEFAULT 0',
                '"order" INTEGER NOT NULL DEFAULT 0',
                '"created_at" TEXT NOT NULL',
            ],
            "indexes": [
                'CREATE INDEX IF NOT EXISTS idx_tasks_category ON tasks ("category_id")',
                'CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks ("owner_id")',
            ],
        },
    }
    return schemas[collection_name]


def decode_record(collection: str, record: dict[str, Any]) -> dict[str, Any]:
    """Convert stored column values back to the Python types the domain models expect."""
    decoded = record.copy()
    for field in JSON_FIELDS.get(collection, set()):
        value = decoded.get(field)
        if isinstance(value, str):
            decoded[field] = json.loads(value)
        elif field in decoded and value is None:
            decoded[field] = []
    for field in BOOL_FIELDS.get(collection, set()):
        if field in decoded and decoded[field] is not None:
            decoded[field] = bool(decoded[field])
    return decoded


async def create_tables(conn: aiosqlite.Connection) -> None:
    """Create all tables and indexes (idempotent)."""
    for collection_name in COLLECTIONS:
        schema = _get_collection_schema(collection_name=collection_name)
        columns = ", ".join(["id INTEGER PRIMARY KEY AUTOINCREMENT", *schema["columns"]])
        await conn.execute(f"CREATE TABLE IF NOT EXISTS {collection_name} ({columns})")
        for index in schema["indexes"]:
            await conn.execute(index)

    await conn.commit()
    logger.info("SQLite schema ready", extra={"collections": COLLECTIONS})
