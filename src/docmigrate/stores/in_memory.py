"""
In-memory storage backend and generation registry.

Suitable for unit tests, prototyping, and single-process tools whose data
does not need to outlive the process.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from docmigrate.exceptions import (
    DocumentConflictError,
    DocumentNotFoundError,
    GenerationNotFoundError,
)
from docmigrate.models import Document, GenerationDescriptor
from docmigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_DOCUMENT_ID,
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
    generation_key,
)

if TYPE_CHECKING:
    from docmigrate.schema import Schema

logger = logging.getLogger(__name__)


@dataclass
class _StoredDocument:
    body: Document
    revision: int
    deleted: bool = False
    rev_token: str = ""

    @property
    def rev(self) -> str:
        return f"{self.revision}-{self.rev_token}"


def _document_id(doc: Document) -> str:
    doc_id = doc.get(STORAGE_ID_FIELD)
    if doc_id is None:
        raise ValueError(f"Document has no {STORAGE_ID_FIELD!r} field")
    return str(doc_id)


class InMemoryStorageBackend(StorageBackend):
    """
    In-memory implementation of the storage backend.

    Storages are created lazily on first write and keyed by handle name.
    Removal is a soft delete; destroy() drops the whole storage.

    Thread-safety:
        Uses an asyncio.Lock; safe for concurrent coroutines within one
        event loop.

    Example:
        >>> backend = InMemoryStorageBackend()
        >>> handle = backend.open("heroes", 1)
        >>> await backend.put(handle, {"_id": "a", "name": "Alice"})
        >>> await backend.count_undeleted(handle)
        1
    """

    def __init__(
        self,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storages: dict[str, dict[str, _StoredDocument]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def count_undeleted(self, handle: StorageHandle) -> int:
        async with self._lock:
            docs = self._storages.get(handle.name, {})
            return sum(1 for stored in docs.values() if not stored.deleted)

    async def get_batch(self, handle: StorageHandle, limit: int) -> list[Document]:
        with self._tracer.span(
            "docmigrate.in_memory.get_batch",
            {ATTR_STORAGE_NAME: handle.name, ATTR_BATCH_SIZE: limit},
        ):
            async with self._lock:
                docs = self._storages.get(handle.name, {})
                batch: list[Document] = []
                for stored in docs.values():
                    if len(batch) >= limit:
                        break
                    if stored.deleted:
                        continue
                    body = copy.deepcopy(stored.body)
                    body[REVISION_FIELD] = stored.rev
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
            "docmigrate.in_memory.put",
            {ATTR_STORAGE_NAME: handle.name, ATTR_DOCUMENT_ID: doc_id},
        ):
            body = copy.deepcopy(doc)
            body.pop(REVISION_FIELD, None)
            async with self._lock:
                docs = self._storages.setdefault(handle.name, {})
                existing = docs.get(doc_id)
                if existing is not None and not existing.deleted and not allow_conflict:
                    raise DocumentConflictError(handle.name, doc_id)
                revision = existing.revision + 1 if existing is not None else 1
                stored = _StoredDocument(body=body, revision=revision, rev_token=uuid4().hex)
                docs[doc_id] = stored
                return stored.rev

    async def remove(self, handle: StorageHandle, doc: Document) -> None:
        doc_id = _document_id(doc)
        with self._tracer.span(
            "docmigrate.in_memory.remove",
            {ATTR_STORAGE_NAME: handle.name, ATTR_DOCUMENT_ID: doc_id},
        ):
            async with self._lock:
                stored = self._storages.get(handle.name, {}).get(doc_id)
                if stored is None or stored.deleted:
                    raise DocumentNotFoundError(handle.name, doc_id)
                stored.deleted = True
                stored.revision += 1
                stored.rev_token = uuid4().hex

    async def destroy(self, handle: StorageHandle) -> None:
        with self._tracer.span(
            "docmigrate.in_memory.destroy",
            {ATTR_STORAGE_NAME: handle.name},
        ):
            async with self._lock:
                self._storages.pop(handle.name, None)
            logger.debug("Destroyed in-memory storage %s", handle.name)

    # Helpers for tests and tooling

    async def get_document(self, handle: StorageHandle, doc_id: str) -> Document | None:
        """Get a live document by id, or None."""
        async with self._lock:
            stored = self._storages.get(handle.name, {}).get(doc_id)
            if stored is None or stored.deleted:
                return None
            body = copy.deepcopy(stored.body)
            body[REVISION_FIELD] = stored.rev
            return body

    async def list_documents(self, handle: StorageHandle) -> list[Document]:
        """Get every live document in a storage."""
        async with self._lock:
            return [
                copy.deepcopy(stored.body)
                for stored in self._storages.get(handle.name, {}).values()
                if not stored.deleted
            ]

    def exists(self, handle: StorageHandle) -> bool:
        """Check whether a storage exists (was written and not destroyed)."""
        return handle.name in self._storages

    @property
    def storage_names(self) -> list[str]:
        return sorted(self._storages)


class InMemoryGenerationRegistry(GenerationRegistry):
    """
    In-memory registry of collection generations.

    Example:
        >>> registry = InMemoryGenerationRegistry()
        >>> await registry.register_generation("heroes", 1, {"version": 1})
        >>> await registry.lookup_generation("heroes", 1)
        GenerationDescriptor(version=1, schema_definition={'version': 1})
    """

    def __init__(self) -> None:
        self._entries: dict[str, GenerationDescriptor] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def register_generation(
        self,
        collection_name: str,
        version: int,
        schema_definition: Any,
    ) -> GenerationDescriptor:
        descriptor = GenerationDescriptor(
            version=version,
            schema_definition=copy.deepcopy(schema_definition),
        )
        async with self._lock:
            self._entries[generation_key(collection_name, version)] = descriptor
        return descriptor

    async def lookup_generation(
        self,
        collection_name: str,
        version: int,
    ) -> GenerationDescriptor | None:
        async with self._lock:
            return self._entries.get(generation_key(collection_name, version))

    async def remove_generation_entry(self, collection_name: str, schema: Schema) -> None:
        key = generation_key(collection_name, schema.version)
        async with self._lock:
            if key not in self._entries:
                raise GenerationNotFoundError(collection_name, schema.version)
            del self._entries[key]

    @property
    def keys(self) -> list[str]:
        return sorted(self._entries)


__all__ = [
    "InMemoryStorageBackend",
    "InMemoryGenerationRegistry",
]
