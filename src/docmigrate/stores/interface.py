"""
Storage collaborator interfaces consumed by the migration engine.

This module provides:
- StorageHandle: names the storage backing one schema generation
- StorageBackend: per-document storage primitives (count/get/put/remove/destroy)
- GenerationRegistry: tracks which schema generations still exist
- generation_key(): the naming convention shared by handles and registry entries
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docmigrate.models import Document, GenerationDescriptor

if TYPE_CHECKING:
    from docmigrate.schema import Schema

STORAGE_ID_FIELD = "_id"
"""Field holding a document's storage identifier."""

REVISION_FIELD = "_rev"
"""Field holding a document's storage revision marker."""


def generation_key(collection_name: str, version: int) -> str:
    """
    Name of a collection generation, e.g. ``"heroes-2"``.

    Used for registry entries and storage handle names alike.
    """
    return f"{collection_name}-{version}"


@dataclass(frozen=True)
class StorageHandle:
    """
    Identifies the storage backing one generation of a collection.

    Attributes:
        collection_name: Name of the collection.
        version: Schema version of the generation.
    """

    collection_name: str
    version: int

    @property
    def name(self) -> str:
        return generation_key(self.collection_name, self.version)

    def __str__(self) -> str:
        return self.name


class StorageBackend(ABC):
    """
    Abstract base class for document storage backends.

    Documents are plain dicts carrying their storage identifier in ``_id``
    and a revision marker in ``_rev``. Removal is a soft delete: removed
    documents are no longer counted or returned by get_batch().
    """

    def open(self, collection_name: str, version: int) -> StorageHandle:
        """
        Get the handle for a collection generation.

        Opening performs no I/O; storage is created on first write.
        """
        return StorageHandle(collection_name, version)

    @abstractmethod
    async def count_undeleted(self, handle: StorageHandle) -> int:
        """
        Count live documents in a storage.

        Args:
            handle: Storage to count.

        Returns:
            Number of documents that are not removed.
        """
        pass

    @abstractmethod
    async def get_batch(self, handle: StorageHandle, limit: int) -> list[Document]:
        """
        Fetch up to ``limit`` live documents.

        Order is backend-defined. Returned dicts are copies; mutating them
        does not affect stored data.
        """
        pass

    @abstractmethod
    async def put(
        self,
        handle: StorageHandle,
        doc: Document,
        *,
        allow_conflict: bool = False,
    ) -> str:
        """
        Write a document.

        Args:
            handle: Target storage.
            doc: Document with an ``_id``. A ``_rev`` is ignored.
            allow_conflict: If True, an existing live document with the same id
                is overwritten. If False, such a write raises DocumentConflictError.

        Returns:
            The new revision marker.
        """
        pass

    @abstractmethod
    async def remove(self, handle: StorageHandle, doc: Document) -> None:
        """
        Remove a document.

        Raises:
            DocumentNotFoundError: If the document is missing or already removed.
        """
        pass

    @abstractmethod
    async def destroy(self, handle: StorageHandle) -> None:
        """Drop a storage and every document in it."""
        pass


class GenerationRegistry(ABC):
    """
    Abstract base class for the registry of collection generations.

    Each entry is keyed by generation_key(collection_name, version) and holds
    the schema definition that generation was created with.
    """

    @abstractmethod
    async def register_generation(
        self,
        collection_name: str,
        version: int,
        schema_definition: Any,
    ) -> GenerationDescriptor:
        """Record a generation, replacing an existing entry for the same key."""
        pass

    @abstractmethod
    async def lookup_generation(
        self,
        collection_name: str,
        version: int,
    ) -> GenerationDescriptor | None:
        """
        Look up a generation.

        Returns:
            The descriptor, or None if no such generation is registered.
        """
        pass

    @abstractmethod
    async def remove_generation_entry(self, collection_name: str, schema: Schema) -> None:
        """
        Remove the entry for ``schema.version``.

        Raises:
            GenerationNotFoundError: If no entry exists.
        """
        pass


__all__ = [
    "STORAGE_ID_FIELD",
    "REVISION_FIELD",
    "generation_key",
    "StorageHandle",
    "StorageBackend",
    "GenerationRegistry",
]
