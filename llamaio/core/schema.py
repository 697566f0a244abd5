"""Document store schema management (code-first approach)."""

import logging

import aiosqlite

from llamaio.domain.fields import FieldType
from llamaio.domain.task import TASK_FIELDS
from llamaio.domain.user import USER_FIELDS


logger = logging.getLogger(__name__)


# Central table of all collections and their field types
COLLECTIONS: dict[str, dict[str, FieldType]] = {
    "users": USER_FIELDS,
    "tasks": TASK_FIELDS,
}

# Fields backed by a unique index on their JSON path
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("email",),
}


def index_name(collection: str, field: str) -> str:
    """Name of the unique index for a collection field."""
    return f"idx_{collection}_{field}"


def unique_field_for_index(name: str) -> str | None:
    """Map a unique index name back to the field it guards."""
    for collection, fields in UNIQUE_FIELDS.items():
        for field in fields:
            if index_name(collection, field) == name:
                return field
    return None


def list_fields(collection: str) -> frozenset[str]:
    """Fields of a collection that hold a list of ids."""
    return frozenset(name for name, kind in COLLECTIONS.get(collection, {}).items() if kind is FieldType.ID_LIST)


async def init_db(conn: aiosqlite.Connection) -> None:
    """Create collection tables and unique indexes if they do not exist."""
    for collection in COLLECTIONS:
        await conn.execute(
            f"CREATE TABLE IF NOT EXISTS {collection} ("  # noqa: S608 - collection names are constants
            "id TEXT PRIMARY KEY, "
            "data TEXT NOT NULL CHECK (json_valid(data)))"
        )
        for field in UNIQUE_FIELDS.get(collection, ()):
            await conn.execute(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name(collection, field)} "
                f"ON {collection} (json_extract(data, '$.{field}'))"
            )
        logger.info("Collection ready", extra={"collection": collection})
