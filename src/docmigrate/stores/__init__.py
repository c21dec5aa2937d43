"""
Storage collaborators for docmigrate.

Each collaborator type provides:
- An abstract base class defining the contract (stores.interface)
- An in-memory implementation for tests and tooling
- A SQLite implementation (aiosqlite) for lightweight persistence
"""

from docmigrate.stores.in_memory import InMemoryGenerationRegistry, InMemoryStorageBackend
from docmigrate.stores.interface import (
    REVISION_FIELD,
    STORAGE_ID_FIELD,
    GenerationRegistry,
    StorageBackend,
    StorageHandle,
    generation_key,
)
from docmigrate.stores.sqlite import SQLiteGenerationRegistry, SQLiteStorageBackend

__all__ = [
    "REVISION_FIELD",
    "STORAGE_ID_FIELD",
    "generation_key",
    "StorageHandle",
    "StorageBackend",
    "GenerationRegistry",
    "InMemoryStorageBackend",
    "InMemoryGenerationRegistry",
    "SQLiteStorageBackend",
    "SQLiteGenerationRegistry",
]
