"""
Binding of the newest collection to its storage collaborators.

A Collection is what a MigrationOrchestrator migrates into. It bundles the
newest schema with the backend, the generation registry and the factories
that GenerationMigrators use to build collaborators for older schemas.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from docmigrate.codecs import (
    Crypter,
    CrypterFactory,
    KeyCompressor,
    KeyCompressorFactory,
    passthrough_compressor_factory,
    passthrough_crypter_factory,
)
from docmigrate.models import Document
from docmigrate.schema import DocumentSchema, Schema
from docmigrate.stores.interface import (
    REVISION_FIELD,
    GenerationRegistry,
    StorageBackend,
    StorageHandle,
)

SchemaFactory = Callable[[Any], Schema]


@dataclass
class Collection:
    """
    The newest collection of a database.

    Attributes:
        name: Collection name; old generations are named "<name>-<version>".
        schema: The newest schema.
        backend: Storage backend holding every generation of this collection.
        registry: Registry of the generations still alive.
        password: Database-wide secret handed to crypter_factory.
        schema_factory: Builds a Schema from a registry schema definition.
        compressor_factory: Builds a KeyCompressor for a schema.
        crypter_factory: Builds a Crypter from (password, schema).

    Example:
        >>> collection = Collection(
        ...     name="heroes",
        ...     schema=DocumentSchema.from_definition(hero_schema_v3),
        ...     backend=InMemoryStorageBackend(),
        ...     registry=InMemoryGenerationRegistry(),
        ... )
    """

    name: str
    schema: Schema
    backend: StorageBackend
    registry: GenerationRegistry
    password: str | None = None
    schema_factory: SchemaFactory = DocumentSchema.from_definition
    compressor_factory: KeyCompressorFactory = passthrough_compressor_factory
    crypter_factory: CrypterFactory = passthrough_crypter_factory

    _storage: StorageHandle | None = field(default=None, init=False, repr=False)
    _compressor: KeyCompressor | None = field(default=None, init=False, repr=False)
    _crypter: Crypter | None = field(default=None, init=False, repr=False)

    @property
    def version(self) -> int:
        return self.schema.version

    @property
    def storage(self) -> StorageHandle:
        """Handle of the newest generation's storage."""
        if self._storage is None:
            self._storage = self.backend.open(self.name, self.schema.version)
        return self._storage

    @property
    def compressor(self) -> KeyCompressor:
        if self._compressor is None:
            self._compressor = self.compressor_factory(self.schema)
        return self._compressor

    @property
    def crypter(self) -> Crypter:
        if self._crypter is None:
            self._crypter = self.crypter_factory(self.password, self.schema)
        return self._crypter

    def to_storage(self, doc: Document) -> Document:
        """
        Convert a plain document of the newest schema to its stored form.

        The revision marker is dropped so the write is a fresh insert.
        """
        stored = {key: value for key, value in doc.items() if key != REVISION_FIELD}
        stored = self.crypter.encrypt(stored)
        stored = self.compressor.compress(stored)
        return self.schema.map_primary_key_to_storage_id(stored)

    async def insert(self, doc: Document) -> str:
        """
        Insert a plain document into the newest storage.

        Returns:
            The revision marker assigned by the backend.
        """
        return await self.backend.put(self.storage, self.to_storage(doc), allow_conflict=True)


__all__ = [
    "Collection",
    "SchemaFactory",
]
