"""
SQLite storage backend and generation registry.

Lightweight persistent implementations built on aiosqlite. Both classes
share a single ``aiosqlite.Connection``; call ``initialize()`` once on
either of them (it is idempotent) to create the tables.

SQLite-specific adaptations:
- Documents stored as JSON TEXT in the ``documents`` table
- Soft deletes via a ``deleted`` flag; destroy() deletes the rows
- Schema definitions stored as JSON TEXT in the ``generations`` table

Example:
    >>> async with aiosqlite.connect("app.db") as db:
    ...     backend = SQLiteStorageBackend(db)
    ...     registry = SQLiteGenerationRegistry(db)
    ...     await backend.initialize()
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import aiosqlite

from docmigrate.exceptions import (
    DocumentConflictError,
    DocumentNotFoundError,
    GenerationNotFoundError,
)
from docmigrate.models import Document, GenerationDescriptor
from docmigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_NAME,
    ATTR_DB_SYSTEM,
    ATTR_DOCUMENT_ID,
    ATTR_GENERATION_VERSION,
    ATTR_STORAGE_NAME,
    Tracer,
    create_tracer,
)
from docmigrate.stores.interface import (
    REVISION_FIELD,
    STORAGE_ID_FIELD,
    GenerationRegistry,
    StorageBackend,
    StorageHandle,
)

if TYPE_CHECKING:
    from docmigrate.schema import Schema

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    storage TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    revision INTEGER NOT NULL,
    rev_token TEXT NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    body TEXT NOT NULL,
    PRIMARY KEY (storage, doc_id)
);

CREATE INDEX IF NOT EXISTS idx_documents_storage_deleted
    ON documents (storage, deleted);

CREATE TABLE IF NOT EXISTS generations (
    collection_name TEXT NOT NULL,
    version INTEGER NOT NULL,
    schema_definition TEXT NOT NULL,
    registered_at TEXT NOT NULL,
    PRIMARY KEY (collection_name, version)
);
"""


async def initialize_schema(connection: aiosqlite.Connection) -> None:
    """Create the documents and generations tables if they don't exist."""
    await connection.executescript(SCHEMA_SQL)
    await connection.commit()


def _document_id(doc: Document) -> str:
    doc_id = doc.get(STORAGE_ID_FIELD)
    if doc_id is None:
        raise ValueError(f"Document has no {STORAGE_ID_FIELD!r} field")
    return str(doc_id)


class SQLiteStorageBackend(StorageBackend):
    """
    SQLite implementation of the storage backend.

    Writes are serialized with an asyncio.Lock so that the read-check-write
    sequence in put() and remove() is atomic for coroutines sharing the
    connection.

    Attributes:
        _connection: The aiosqlite connection
        _lock: Serializes read-modify-write sequences
    """

    def __init__(
        self,
        connection: aiosqlite.Connection,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create tables. Safe to call multiple times."""
        await initialize_schema(self._connection)

    async def count_undeleted(self, handle: StorageHandle) -> int:
        with self._tracer.span(
            "docmigrate.sqlite.count_undeleted",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_STORAGE_NAME: handle.name},
        ):
            cursor = await self._connection.execute(
                "SELECT COUNT(*) FROM documents WHERE storage = ? AND deleted = 0",
                (handle.name,),
            )
            row = await cursor.fetchone()
            return int(row[0]) if row else 0

    async def get_batch(self, handle: StorageHandle, limit: int) -> list[Document]:
        with self._tracer.span(
            "docmigrate.sqlite.get_batch",
            {
                ATTR_DB_SYSTEM: "sqlite",
                ATTR_STORAGE_NAME: handle.name,
                ATTR_BATCH_SIZE: limit,
            },
        ):
            cursor = await self._connection.execute(
                """
                SELECT body, revision, rev_token
                FROM documents
                WHERE storage = ? AND deleted = 0
                ORDER BY rowid
                LIMIT ?
                """,
                (handle.name, limit),
            )
            rows = await cursor.fetchall()
            batch: list[Document] = []
            for row in rows:
                body = json.loads(row[0])
                body[REVISION_FIELD] = f"{row[1]}-{row[2]}"
                batch.append(body)
            return batch

    async def put(
        self,
        handle: StorageHandle,
        doc: Document,
        *,
        allow_conflict: bool = False,
    ) -> str:
        doc_id = _document_id(doc)
        with self._tracer.span(
            "docmigrate.sqlite.put",
            {
                ATTR_DB_SYSTEM: "sqlite",
                ATTR_STORAGE_NAME: handle.name,
                ATTR_DOCUMENT_ID: doc_id,
            },
        ):
            body = {k: v for k, v in doc.items() if k != REVISION_FIELD}
            payload = json.dumps(body)
            rev_token = uuid4().hex
            async with self._lock:
                cursor = await self._connection.execute(
                    "SELECT revision, deleted FROM documents WHERE storage = ? AND doc_id = ?",
                    (handle.name, doc_id),
                )
                existing = await cursor.fetchone()
                if existing is not None and not existing[1] and not allow_conflict:
                    raise DocumentConflictError(handle.name, doc_id)
                revision = int(existing[0]) + 1 if existing is not None else 1
                await self._connection.execute(
                    """
                    INSERT INTO documents (storage, doc_id, revision, rev_token, deleted, body)
                    VALUES (?, ?, ?, ?, 0, ?)
                    ON CONFLICT (storage, doc_id) DO UPDATE
                    SET revision = excluded.revision,
                        rev_token = excluded.rev_token,
                        deleted = 0,
                        body = excluded.body
                    """,
                    (handle.name, doc_id, revision, rev_token, payload),
                )
                await self._connection.commit()
            return f"{revision}-{rev_token}"

    async def remove(self, handle: StorageHandle, doc: Document) -> None:
        doc_id = _document_id(doc)
        with self._tracer.span(
            "docmigrate.sqlite.remove",
            {
                ATTR_DB_SYSTEM: "sqlite",
                ATTR_STORAGE_NAME: handle.name,
                ATTR_DOCUMENT_ID: doc_id,
            },
        ):
            async with self._lock:
                cursor = await self._connection.execute(
                    """
                    UPDATE documents
                    SET deleted = 1, revision = revision + 1, rev_token = ?
                    WHERE storage = ? AND doc_id = ? AND deleted = 0
                    """,
                    (uuid4().hex, handle.name, doc_id),
                )
                if cursor.rowcount == 0:
                    raise DocumentNotFoundError(handle.name, doc_id)
                await self._connection.commit()

    async def destroy(self, handle: StorageHandle) -> None:
        with self._tracer.span(
            "docmigrate.sqlite.destroy",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_STORAGE_NAME: handle.name},
        ):
            async with self._lock:
                await self._connection.execute(
                    "DELETE FROM documents WHERE storage = ?",
                    (handle.name,),
                )
                await self._connection.commit()
            logger.debug("Destroyed SQLite storage %s", handle.name)

    async def get_document(self, handle: StorageHandle, doc_id: str) -> Document | None:
        """Get a live document by id, or None."""
        cursor = await self._connection.execute(
            """
            SELECT body, revision, rev_token
            FROM documents
            WHERE storage = ? AND doc_id = ? AND deleted = 0
            """,
            (handle.name, doc_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        body: Document = json.loads(row[0])
        body[REVISION_FIELD] = f"{row[1]}-{row[2]}"
        return body

    async def count_rows(self, handle: StorageHandle) -> int:
        """Count rows of a storage including removed documents."""
        cursor = await self._connection.execute(
            "SELECT COUNT(*) FROM documents WHERE storage = ?",
            (handle.name,),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0


class SQLiteGenerationRegistry(GenerationRegistry):
    """
    SQLite implementation of the generation registry.

    Stores one row per (collection_name, version) in the ``generations`` table.
    """

    def __init__(
        self,
        connection: aiosqlite.Connection,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection

    async def initialize(self) -> None:
        """Create tables. Safe to call multiple times."""
        await initialize_schema(self._connection)

    async def register_generation(
        self,
        collection_name: str,
        version: int,
        schema_definition: Any,
    ) -> GenerationDescriptor:
        with self._tracer.span(
            "docmigrate.sqlite.register_generation",
            {ATTR_COLLECTION_NAME: collection_name, ATTR_GENERATION_VERSION: version},
        ):
            await self._connection.execute(
                """
                INSERT INTO generations (collection_name, version, schema_definition, registered_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (collection_name, version) DO UPDATE
                SET schema_definition = excluded.schema_definition,
                    registered_at = excluded.registered_at
                """,
                (
                    collection_name,
                    version,
                    json.dumps(schema_definition),
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._connection.commit()
            return GenerationDescriptor(version=version, schema_definition=schema_definition)

    async def lookup_generation(
        self,
        collection_name: str,
        version: int,
    ) -> GenerationDescriptor | None:
        with self._tracer.span(
            "docmigrate.sqlite.lookup_generation",
            {ATTR_COLLECTION_NAME: collection_name, ATTR_GENERATION_VERSION: version},
        ):
            cursor = await self._connection.execute(
                """
                SELECT schema_definition
                FROM generations
                WHERE collection_name = ? AND version = ?
                """,
                (collection_name, version),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return GenerationDescriptor(version=version, schema_definition=json.loads(row[0]))

    async def remove_generation_entry(self, collection_name: str, schema: Schema) -> None:
        with self._tracer.span(
            "docmigrate.sqlite.remove_generation_entry",
            {ATTR_COLLECTION_NAME: collection_name, ATTR_GENERATION_VERSION: schema.version},
        ):
            cursor = await self._connection.execute(
                "DELETE FROM generations WHERE collection_name = ? AND version = ?",
                (collection_name, schema.version),
            )
            if cursor.rowcount == 0:
                raise GenerationNotFoundError(collection_name, schema.version)
            await self._connection.commit()


__all__ = [
    "SCHEMA_SQL",
    "initialize_schema",
    "SQLiteStorageBackend",
    "SQLiteGenerationRegistry",
]
