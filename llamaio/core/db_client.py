"""SQLite-backed document store with CRUD and query operations.

Each collection is a table of `(id, data)` rows where `data` holds the JSON
document. Records are returned as plain dicts with the id under `_id`.
"""

import asyncio
import json
import logging
import re
import secrets
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from llamaio.core import schema
from llamaio.core.query import AllOf, AnyOf, Condition, Filter, Operator, SortKey, StoreQuery
from llamaio.domain.fields import is_record_id


logger = logging.getLogger(__name__)

ID_FIELD = "_id"
MEMORY_DB = ":memory:"

_SQL_COMPARISONS = {
    Operator.EQ: "=",
    Operator.NE: "!=",
    Operator.GT: ">",
    Operator.GTE: ">=",
    Operator.LT: "<",
    Operator.LTE: "<=",
}


class DatabaseError(Exception):
    """Base class for document store failures."""


class RecordNotFoundError(DatabaseError):
    """No record exists for the requested id."""


class InvalidRecordIdError(RecordNotFoundError):
    """The id is not in the store's id format, so no record can match it."""


class DuplicateRecordError(DatabaseError):
    """A write would violate a unique index."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection is one of the known collections."""
    if collection not in schema.COLLECTIONS:
        msg = f"Invalid collection name: {collection}"
        raise ValueError(msg)


def _validate_field_name(field: str) -> None:
    """Validate that a field name is safe to embed in a JSON path."""
    if field != ID_FIELD and not re.match(r"^[A-Za-z][A-Za-z0-9_]*$", field):
        msg = f"Invalid field name: {field}"
        raise ValueError(msg)


def generate_record_id() -> str:
    """Generate a 24-hex-char id: 4 bytes of epoch seconds followed by 8 random bytes."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def _column(collection: str, field: str) -> str:
    """SQL expression selecting a document field."""
    _validate_field_name(field)
    if field == ID_FIELD:
        return f"{collection}.id"
    return f"json_extract({collection}.data, '$.{field}')"


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _compile_list_condition(collection: str, condition: Condition) -> tuple[str, list[Any]]:
    """Compile a condition on a list field, where equality means "contains"."""
    _validate_field_name(condition.field)
    elements = f"SELECT 1 FROM json_each({collection}.data, '$.{condition.field}') AS element"

    if condition.op in (Operator.EQ, Operator.NE):
        exists = f"EXISTS ({elements} WHERE element.value = ?)"
        sql = exists if condition.op is Operator.EQ else f"NOT {exists}"
        return sql, [condition.value]

    if condition.op in (Operator.IN, Operator.NIN):
        values = list(condition.value)
        if not values:
            return ("0", []) if condition.op is Operator.IN else ("1", [])
        exists = f"EXISTS ({elements} WHERE element.value IN ({_placeholders(len(values))}))"
        sql = exists if condition.op is Operator.IN else f"NOT {exists}"
        return sql, values

    msg = f"Unsupported operator for list field {condition.field}: {condition.op}"
    raise ValueError(msg)


def _compile_membership(column: str, op: Operator, values: list[Any]) -> tuple[str, list[Any]]:
    """Compile $in / $nin, where a None member matches missing or null fields."""
    has_null = None in values
    present = [value for value in values if value is not None]
    in_list = f"{column} IN ({_placeholders(len(present))})" if present else None
    not_in_list = f"{column} NOT IN ({_placeholders(len(present))})" if present else None

    if op is Operator.IN:
        parts = [part for part in (in_list, f"{column} IS NULL" if has_null else None) if part]
        if not parts:
            return "0", []
        return f"({' OR '.join(parts)})", present

    if has_null:
        parts = [f"{column} IS NOT NULL", *([not_in_list] if not_in_list else [])]
        return f"({' AND '.join(parts)})", present
    if not_in_list:
        return f"({column} IS NULL OR {not_in_list})", present
    return "1", []


def _compile_condition(collection: str, condition: Condition) -> tuple[str, list[Any]]:
    """Compile a single condition into a SQL predicate and parameters."""
    if condition.field in schema.list_fields(collection):
        return _compile_list_condition(collection, condition)

    column = _column(collection, condition.field)
    op = condition.op
    value = condition.value

    if op in (Operator.IN, Operator.NIN):
        return _compile_membership(column, op, list(value))

    if value is None:
        if op is Operator.EQ:
            return f"{column} IS NULL", []
        if op is Operator.NE:
            return f"{column} IS NOT NULL", []
        msg = f"Operator {op} does not accept null"
        raise ValueError(msg)

    if op is Operator.NE:
        return f"({column} IS NULL OR {column} != ?)", [value]

    return f"{column} {_SQL_COMPARISONS[op]} ?", [value]


def compile_filter(collection: str, where: Filter | None) -> tuple[str, list[Any]]:
    """Compile a validated filter into a SQL WHERE predicate and parameter list."""
    if where is None:
        return "1", []

    if isinstance(where, Condition):
        return _compile_condition(collection, where)

    if isinstance(where, AllOf | AnyOf):
        if not where.clauses:
            return ("1", []) if isinstance(where, AllOf) else ("0", [])
        joiner = " AND " if isinstance(where, AllOf) else " OR "
        parts = []
        params: list[Any] = []
        for clause in where.clauses:
            sql, clause_params = compile_filter(collection, clause)
            parts.append(f"({sql})")
            params.extend(clause_params)
        return joiner.join(parts), params

    msg = f"Unsupported filter node: {where!r}"
    raise TypeError(msg)


def _compile_sort(collection: str, sort: list[SortKey]) -> str:
    """Compile sort keys into an ORDER BY clause, falling back to insertion order."""
    terms = [f"{_column(collection, key.field)} {'DESC' if key.descending else 'ASC'}" for key in sort]
    terms.append(f"{collection}.rowid ASC")
    return ", ".join(terms)


def _set_expression(collection: str, changes: dict[str, Any]) -> tuple[str, list[Any]]:
    """Build a json_set() expression applying field changes to a document."""
    if not changes:
        msg = "Empty update payload"
        raise ValueError(msg)

    args = []
    params = []
    for field, value in changes.items():
        if field == ID_FIELD:
            msg = "The _id field cannot be modified"
            raise ValueError(msg)
        _validate_field_name(field)
        args.append(f"'$.{field}', json(?)")
        params.append(json.dumps(value))
    return f"json_set({collection}.data, {', '.join(args)})", params


def _to_record(record_id: str, data: str) -> dict[str, Any]:
    return {ID_FIELD: record_id, **json.loads(data)}


def _require_record_id(collection: str, record_id: str) -> None:
    if not is_record_id(record_id):
        msg = f"Invalid record id for {collection}: {record_id}"
        raise InvalidRecordIdError(msg)


def _duplicate_error(collection: str, error: aiosqlite.IntegrityError) -> DuplicateRecordError | None:
    """Translate a unique-index violation into a DuplicateRecordError."""
    message = str(error)
    if "UNIQUE constraint failed" not in message:
        return None
    match = re.search(r"index '(\w+)'", message)
    field = schema.unique_field_for_index(match.group(1)) if match else None
    return DuplicateRecordError(f"Duplicate value in {collection}: {message}", field=field)


class DocumentStore:
    """Document store client owning a single aiosqlite connection.

    Construct one per process, call `connect()` at startup and pass it to
    whatever needs the store.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Document store is not connected. Call connect() first."
            raise DatabaseError(msg)
        return self._conn

    async def connect(self) -> None:
        """Open the connection and make sure the schema exists."""
        if self._conn is not None:
            return

        if self._db_path != MEMORY_DB:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode; multi-statement writes go through transaction()
        self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        await self._conn.execute("PRAGMA journal_mode = WAL")
        await schema.init_db(self._conn)

        logger.info("Opened document store", extra={"db_path": self._db_path})

    async def close(self) -> None:
        """Close the connection if it is open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed document store", extra={"db_path": self._db_path})
        except Exception as e:
            logger.warning("Error closing document store", extra={"error": str(e), "db_path": self._db_path})
        finally:
            self._conn = None

    async def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            cursor = await self.connection.execute("SELECT 1")
            row = await cursor.fetchone()
            return row is not None and row[0] == 1
        except Exception as e:
            logger.warning("Document store ping failed", extra={"error": str(e)})
            return False

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed writes as one atomic unit.

        Transactions are serialized; they must not be nested. Reads do not take
        the lock and share the connection, so a read that runs while a
        transaction is open sees its uncommitted writes.
        """
        async with self._write_lock:
            conn = self.connection
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                await conn.execute("ROLLBACK")
                logger.warning("Rolled back transaction", extra={"db_path": self._db_path})
                raise
            await conn.execute("COMMIT")

    async def _execute(self, collection: str, query: str, params: list[Any] | tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        try:
            return await self.connection.execute(query, params)
        except aiosqlite.IntegrityError as e:
            duplicate = _duplicate_error(collection, e)
            if duplicate is not None:
                raise duplicate from e
            msg = f"Integrity error in {collection}: {e}"
            raise DatabaseError(msg) from e
        except aiosqlite.Error as e:
            msg = f"Query on {collection} failed: {e}"
            raise DatabaseError(msg) from e

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document and return it with its assigned id."""
        _validate_collection_name(collection)
        record_id = generate_record_id()
        document = {key: value for key, value in data.items() if key != ID_FIELD}

        try:
            await self._execute(
                collection,
                f"INSERT INTO {collection} (id, data) VALUES (?, ?)",  # noqa: S608 - collection is validated
                (record_id, json.dumps(document)),
            )
        except DatabaseError as e:
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return {ID_FIELD: record_id, **document}

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch a single record by id.

        Raises:
            InvalidRecordIdError: If the id is malformed
            RecordNotFoundError: If no record has this id
        """
        _validate_collection_name(collection)
        _require_record_id(collection, record_id)

        cursor = await self._execute(
            collection,
            f"SELECT id, data FROM {collection} WHERE id = ?",  # noqa: S608 - collection is validated
            (record_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _to_record(row[0], row[1])

    async def find_record(self, *, collection: str, record_id: str) -> dict[str, Any] | None:
        """Fetch a record by id, returning None when it is missing or the id is malformed."""
        try:
            return await self.get_record(collection=collection, record_id=record_id)
        except RecordNotFoundError:
            return None

    async def replace_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Replace a document's fields (keeping its id) and return the stored record."""
        _validate_collection_name(collection)
        _require_record_id(collection, record_id)
        document = {key: value for key, value in data.items() if key != ID_FIELD}

        try:
            cursor = await self._execute(
                collection,
                f"UPDATE {collection} SET data = ? WHERE id = ?",  # noqa: S608 - collection is validated
                (json.dumps(document), record_id),
            )
        except DatabaseError as e:
            logger.error(
                "replace_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Replaced record", extra={"collection": collection, "record_id": record_id})
        return {ID_FIELD: record_id, **document}

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Set the given fields on one record and return the updated record."""
        _validate_collection_name(collection)
        _require_record_id(collection, record_id)
        expression, params = _set_expression(collection, data)

        cursor = await self._execute(
            collection,
            f"UPDATE {collection} SET data = {expression} WHERE id = ?",  # noqa: S608 - collection is validated
            [*params, record_id],
        )
        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=record_id)

    async def update_many(self, *, collection: str, where: Filter | None, data: dict[str, Any]) -> int:
        """Set the given fields on every record matching the filter; return how many matched."""
        _validate_collection_name(collection)
        expression, set_params = _set_expression(collection, data)
        where_sql, where_params = compile_filter(collection, where)

        cursor = await self._execute(
            collection,
            f"UPDATE {collection} SET data = {expression} WHERE {where_sql}",  # noqa: S608 - built from validated parts
            [*set_params, *where_params],
        )

        logger.info("Updated records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount

    async def add_to_set(self, *, collection: str, record_id: str, field: str, value: str) -> bool:
        """Append value to a list field unless already present.

        Returns True if the record was modified. A missing record is not an error.
        """
        _validate_collection_name(collection)
        _validate_field_name(field)
        if not is_record_id(record_id):
            return False

        cursor = await self._execute(
            collection,
            f"UPDATE {collection} SET data = json_insert({collection}.data, '$.{field}[#]', ?) "  # noqa: S608
            f"WHERE id = ? AND NOT EXISTS ("
            f"SELECT 1 FROM json_each({collection}.data, '$.{field}') AS element WHERE element.value = ?)",
            (value, record_id, value),
        )
        modified = cursor.rowcount > 0
        if modified:
            logger.info("Added to set", extra={"collection": collection, "record_id": record_id, "field": field})
        return modified

    async def pull(self, *, collection: str, record_id: str, field: str, value: str) -> bool:
        """Remove every occurrence of value from a list field.

        Returns True if the record was modified. A missing record is not an error.
        """
        _validate_collection_name(collection)
        _validate_field_name(field)
        if not is_record_id(record_id):
            return False

        elements = f"FROM json_each({collection}.data, '$.{field}') AS element"
        cursor = await self._execute(
            collection,
            f"UPDATE {collection} SET data = json_set({collection}.data, '$.{field}', "  # noqa: S608
            f"json((SELECT json_group_array(element.value) {elements} WHERE element.value != ?))) "
            f"WHERE id = ? AND EXISTS (SELECT 1 {elements} WHERE element.value = ?)",
            (value, record_id, value),
        )
        modified = cursor.rowcount > 0
        if modified:
            logger.info("Pulled from set", extra={"collection": collection, "record_id": record_id, "field": field})
        return modified

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record by id.

        Raises:
            InvalidRecordIdError: If the id is malformed
            RecordNotFoundError: If no record has this id
        """
        _validate_collection_name(collection)
        _require_record_id(collection, record_id)

        cursor = await self._execute(
            collection,
            f"DELETE FROM {collection} WHERE id = ?",  # noqa: S608 - collection is validated
            (record_id,),
        )
        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})

    async def find_records(self, *, collection: str, query: StoreQuery | None = None) -> list[dict[str, Any]]:
        """List records: filter, then sort, then project, then skip and limit."""
        _validate_collection_name(collection)
        query = query or StoreQuery()
        where_sql, params = compile_filter(collection, query.where)
        order_by = _compile_sort(collection, query.sort)
        limit = query.limit if query.limit is not None else -1

        cursor = await self._execute(
            collection,
            f"SELECT id, data FROM {collection} WHERE {where_sql} ORDER BY {order_by} LIMIT ? OFFSET ?",  # noqa: S608
            [*params, limit, query.skip],
        )
        rows = await cursor.fetchall()

        records = [_to_record(row[0], row[1]) for row in rows]
        if query.projection is not None:
            records = [query.projection.apply(record) for record in records]

        logger.info("Listed records", extra={"collection": collection, "count": len(records)})
        return records

    async def count_records(self, *, collection: str, where: Filter | None = None) -> int:
        """Count records matching the filter."""
        _validate_collection_name(collection)
        where_sql, params = compile_filter(collection, where)

        cursor = await self._execute(
            collection,
            f"SELECT COUNT(*) FROM {collection} WHERE {where_sql}",  # noqa: S608 - built from validated parts
            params,
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
