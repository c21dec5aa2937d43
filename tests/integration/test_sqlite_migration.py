"""
Integration tests for migrating collections stored in SQLite.

Tests cover:
- Full migration of two generations with key compression and encryption
- Migration of a file database after reconnecting
- Resuming a run that failed part-way with a fresh orchestrator
"""

import base64
from pathlib import Path
from typing import Any

import aiosqlite
import pytest

from docmigrate.collection import Collection
from docmigrate.exceptions import FinalValidationError
from docmigrate.orchestrator import MigrationOrchestrator
from docmigrate.schema import DocumentSchema, Schema
from docmigrate.stores.sqlite import SQLiteGenerationRegistry, SQLiteStorageBackend
from tests.fixtures import HERO_V1, HERO_V2, HERO_V3, identity, make_heroes

pytestmark = pytest.mark.sqlite

_KEYS = {"name": "|a", "age": "|b", "level": "|c"}


class ShortKeyCompressor:
    """Compresses known field names to short keys."""

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def compress(self, doc: dict[str, Any]) -> dict[str, Any]:
        return {_KEYS.get(key, key): value for key, value in doc.items()}

    def decompress(self, doc: dict[str, Any]) -> dict[str, Any]:
        reverse = {short: key for key, short in _KEYS.items()}
        return {reverse.get(key, key): value for key, value in doc.items()}


class NameCrypter:
    """Obfuscates the name field with the database password."""

    def __init__(self, password: str | None, schema: Schema) -> None:
        self.password = password or ""

    def encrypt(self, doc: dict[str, Any]) -> dict[str, Any]:
        token = f"{self.password}:{doc['name']}".encode()
        return {**doc, "name": base64.b64encode(token).decode()}

    def decrypt(self, doc: dict[str, Any]) -> dict[str, Any]:
        password, _, name = base64.b64decode(doc["name"]).decode().partition(":")
        assert password == self.password
        return {**doc, "name": name}


def _collection(
    backend: SQLiteStorageBackend,
    registry: SQLiteGenerationRegistry,
    definition: dict[str, Any],
) -> Collection:
    return Collection(
        name="heroes",
        schema=DocumentSchema.from_definition(definition),
        backend=backend,
        registry=registry,
        password="hunter2",
        compressor_factory=ShortKeyCompressor,
        crypter_factory=NameCrypter,
    )


async def _seed(
    backend: SQLiteStorageBackend,
    registry: SQLiteGenerationRegistry,
    definition: dict[str, Any],
    docs: list[dict[str, Any]],
) -> Collection:
    """Write documents the way an old version of the application did."""
    old = _collection(backend, registry, definition)
    await registry.register_generation("heroes", old.version, definition)
    for doc in docs:
        await old.insert(doc)
    return old


def add_age(doc: dict[str, Any]) -> dict[str, Any]:
    doc["age"] = len(doc["name"])
    return doc


def add_level(doc: dict[str, Any]) -> dict[str, Any]:
    doc["level"] = 1
    return doc


class TestSQLiteMigration:
    """End-to-end migration on the SQLite backend."""

    @pytest.mark.asyncio
    async def test_two_generations_with_codecs(
        self,
        sqlite_backend: SQLiteStorageBackend,
        sqlite_registry: SQLiteGenerationRegistry,
    ) -> None:
        v1 = await _seed(sqlite_backend, sqlite_registry, HERO_V1, make_heroes("v1", 3))
        v2 = await _seed(
            sqlite_backend,
            sqlite_registry,
            HERO_V2,
            [{**doc, "age": 40} for doc in make_heroes("v2", 2)],
        )
        newest = _collection(sqlite_backend, sqlite_registry, HERO_V3)

        final = await MigrationOrchestrator(
            newest, {2: add_age, 3: add_level}
        ).migrate_and_wait(batch_size=2)

        assert final.to_dict() == {
            "done": True,
            "total": 5,
            "handled": 5,
            "success": 5,
            "deleted": 0,
            "percent": 100,
        }
        assert await sqlite_backend.count_rows(v1.storage) == 0
        assert await sqlite_backend.count_rows(v2.storage) == 0
        assert await sqlite_registry.lookup_generation("heroes", 1) is None
        assert await sqlite_registry.lookup_generation("heroes", 2) is None

        stored = await sqlite_backend.get_document(newest.storage, "v1-0")
        assert stored is not None
        assert "name" not in stored
        assert stored["|b"] == len("Hero v1 0")
        assert stored["|c"] == 1
        assert base64.b64decode(stored["|a"]).decode() == "hunter2:Hero v1 0"

        kept = await sqlite_backend.get_document(newest.storage, "v2-1")
        assert kept is not None
        assert kept["|b"] == 40

    @pytest.mark.asyncio
    async def test_file_database_after_reconnect(self, tmp_path: Path) -> None:
        path = tmp_path / "heroes.db"

        async with aiosqlite.connect(path) as conn:
            backend = SQLiteStorageBackend(conn, enable_tracing=False)
            registry = SQLiteGenerationRegistry(conn, enable_tracing=False)
            await backend.initialize()
            await _seed(backend, registry, HERO_V2, make_heroes("v2", 4))

        async with aiosqlite.connect(path) as conn:
            backend = SQLiteStorageBackend(conn, enable_tracing=False)
            registry = SQLiteGenerationRegistry(conn, enable_tracing=False)
            newest = _collection(backend, registry, HERO_V3)

            states = await MigrationOrchestrator(
                newest, {2: identity, 3: add_level}
            ).migrate().collect()

            assert states[0].total == 4
            assert states[-1].done is True
            assert await backend.count_undeleted(newest.storage) == 4

    @pytest.mark.asyncio
    async def test_resume_after_failed_run(
        self,
        sqlite_backend: SQLiteStorageBackend,
        sqlite_registry: SQLiteGenerationRegistry,
    ) -> None:
        v1 = await _seed(sqlite_backend, sqlite_registry, HERO_V1, make_heroes("v1", 4))
        newest = _collection(sqlite_backend, sqlite_registry, HERO_V3)

        def strict_level(doc: dict[str, Any]) -> dict[str, Any]:
            doc["level"] = "unknown" if doc["passportId"] == "v1-3" else 1
            return doc

        with pytest.raises(FinalValidationError):
            await MigrationOrchestrator(newest, {2: add_age, 3: strict_level}).migrate_and_wait(
                batch_size=2
            )

        assert await sqlite_backend.count_undeleted(v1.storage) == 1
        assert await sqlite_backend.count_undeleted(newest.storage) == 3

        final = await MigrationOrchestrator(
            _collection(sqlite_backend, sqlite_registry, HERO_V3),
            {2: add_age, 3: add_level},
        ).migrate_and_wait()

        assert final.total == 1
        assert final.success == 1
        assert await sqlite_backend.count_undeleted(newest.storage) == 4
        assert await sqlite_registry.lookup_generation("heroes", 1) is None
