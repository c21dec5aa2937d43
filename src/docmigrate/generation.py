"""
GenerationMigrator - drains one old schema generation into the newest collection.

The migrator reads undeleted documents from its generation's storage in
batches, runs every document of a batch concurrently through the migration
strategy chain, writes the results into the newest collection and removes
the originals. Once a fetch comes back empty, the generation's storage and
registry entry are deleted.

Per-document pipeline:
    1. decode: storage id -> primary key, decompress field names, decrypt
    2. run strategies version+1 .. newest; an empty result drops the document
    3. validate against the newest schema (failure aborts the generation)
    4. strip the revision marker and insert into the newest collection
    5. remove the original from the old storage (failures absorbed)

Usage:
    >>> migrator = GenerationMigrator(descriptor, collection, strategies)
    >>> async for action in migrator.migrate(batch_size=10):
    ...     print(action.kind, action.migrated)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from docmigrate.exceptions import (
    AlreadyRunningError,
    DocumentWriteError,
    FinalValidationError,
    MigrationCancelledError,
    SchemaValidationError,
    TransformError,
)
from docmigrate.metrics import MigrationMetrics
from docmigrate.models import (
    Document,
    DocumentAction,
    GenerationDescriptor,
    RunState,
    validate_batch_size,
)
from docmigrate.observability import (
    ATTR_ACTION_KIND,
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_NAME,
    ATTR_DOCUMENT_ID,
    ATTR_GENERATION_VERSION,
    ATTR_TARGET_VERSION,
    Tracer,
    create_tracer,
)
from docmigrate.stream import ProgressStream
from docmigrate.stores.interface import REVISION_FIELD, STORAGE_ID_FIELD, StorageHandle

if TYPE_CHECKING:
    from docmigrate.codecs import Crypter, KeyCompressor
    from docmigrate.collection import Collection
    from docmigrate.schema import Schema
    from docmigrate.strategies import MigrationStrategies

logger = logging.getLogger(__name__)


class GenerationMigrator:
    """
    Migrates every document of one old schema generation.

    migrate() may be called once per instance. The generation's schema,
    key compressor, crypter and storage handle are built on first use and
    cached for the lifetime of the migrator.

    Attributes:
        _descriptor: Version and schema definition of the generation.
        _collection: The newest collection documents are written into.
        _strategies: Migration strategies by target version.
        _run_state: Single-shot guard for migrate().
        _is_cancelled: Stop after the in-flight batch.
    """

    def __init__(
        self,
        descriptor: GenerationDescriptor,
        collection: Collection,
        strategies: MigrationStrategies,
        *,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._descriptor = descriptor
        self._collection = collection
        self._strategies = strategies
        self._metrics = metrics or MigrationMetrics(collection.name, enable_metrics=False)

        self._schema: Schema | None = None
        self._compressor: KeyCompressor | None = None
        self._crypter: Crypter | None = None
        self._storage: StorageHandle | None = None

        # Storage ids already handled whose originals could not be removed
        self._unremoved: set[Any] = set()

        self._run_state = RunState.NOT_STARTED
        self._is_cancelled = False
        self._wait_task: asyncio.Future[None] | None = None

    @property
    def version(self) -> int:
        return self._descriptor.version

    @property
    def target_version(self) -> int:
        return self._collection.schema.version

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def schema(self) -> Schema:
        if self._schema is None:
            self._schema = self._collection.schema_factory(self._descriptor.schema_definition)
        return self._schema

    @property
    def compressor(self) -> KeyCompressor:
        if self._compressor is None:
            self._compressor = self._collection.compressor_factory(self.schema)
        return self._compressor

    @property
    def crypter(self) -> Crypter:
        if self._crypter is None:
            self._crypter = self._collection.crypter_factory(self._collection.password, self.schema)
        return self._crypter

    @property
    def storage(self) -> StorageHandle:
        if self._storage is None:
            self._storage = self._collection.backend.open(self._collection.name, self.version)
        return self._storage

    async def count_undeleted(self) -> int:
        return await self._collection.backend.count_undeleted(self.storage)

    async def get_batch(self, batch_size: int) -> list[Document]:
        """
        Fetch up to batch_size undeleted documents in their stored form.

        Documents that were already migrated but could not be removed from
        this generation are skipped, so a failing remove cannot stall the run.
        """
        fetched = await self._collection.backend.get_batch(
            self.storage,
            batch_size + len(self._unremoved),
        )
        fresh = [doc for doc in fetched if doc.get(STORAGE_ID_FIELD) not in self._unremoved]
        return fresh[:batch_size]

    def decode(self, raw: Document) -> Document:
        """Convert a stored document into a plain document of this generation's schema."""
        swapped = self.schema.map_storage_id_to_primary_key(raw)
        decompressed = self.compressor.decompress(swapped)
        return self.crypter.decrypt(decompressed)

    async def migrate_document_data(self, doc: Document) -> Document | None:
        """
        Run a plain document through every strategy up to the newest version.

        Returns:
            The document in the newest schema, or None if a strategy dropped it.

        Raises:
            TransformError: If a strategy raised.
            FinalValidationError: If the result does not match the newest schema.
        """
        current: Document | None = doc
        for next_version in range(self.version + 1, self.target_version + 1):
            try:
                current = await self._strategies.apply(next_version, current)
            except Exception as e:
                raise TransformError(
                    version=self.version,
                    target_version=self.target_version,
                    from_version=next_version - 1,
                    to_version=next_version,
                    document=doc,
                    message=str(e) or type(e).__name__,
                ) from e
            if not current:
                return None

        assert current is not None
        try:
            self._collection.schema.validate(current)
        except (SchemaValidationError, ValueError) as e:
            raise FinalValidationError(
                version=self.version,
                target_version=self.target_version,
                document=current,
                message=str(e),
            ) from e
        return current

    async def migrate_document(self, raw: Document) -> DocumentAction:
        """
        Migrate one stored document and remove it from this generation.

        Raises:
            TransformError, FinalValidationError, DocumentWriteError: fatal failures.
        """
        with self._tracer.span(
            "docmigrate.generation.migrate_document",
            {
                ATTR_COLLECTION_NAME: self._collection.name,
                ATTR_GENERATION_VERSION: self.version,
                ATTR_DOCUMENT_ID: str(raw.get(STORAGE_ID_FIELD)),
            },
        ) as span:
            original = self.decode(raw)
            migrated = await self.migrate_document_data(original)

            if migrated is not None:
                migrated.pop(REVISION_FIELD, None)
                try:
                    await self._collection.insert(migrated)
                except Exception as e:
                    raise DocumentWriteError(
                        version=self.version,
                        target_version=self.target_version,
                        document=migrated,
                        message=str(e) or type(e).__name__,
                    ) from e
                action = DocumentAction.success(original, migrated)
            else:
                action = DocumentAction.deleted(original)

            try:
                await self._collection.backend.remove(self.storage, raw)
            except Exception as e:
                logger.debug(
                    "Could not remove document %s from %s: %s",
                    raw.get(STORAGE_ID_FIELD),
                    self.storage.name,
                    e,
                )
                self._metrics.record_remove_failure(self.version, type(e).__name__)
                self._unremoved.add(raw.get(STORAGE_ID_FIELD))

            if span is not None:
                span.set_attribute(ATTR_ACTION_KIND, action.kind.value)
            self._metrics.record_document(action.kind, self.version)
            return action

    async def delete(self) -> None:
        """Destroy this generation's storage and remove its registry entry."""
        with self._tracer.span(
            "docmigrate.generation.delete",
            {
                ATTR_COLLECTION_NAME: self._collection.name,
                ATTR_GENERATION_VERSION: self.version,
            },
        ):
            await self._collection.backend.destroy(self.storage)
            await self._collection.registry.remove_generation_entry(
                self._collection.name,
                self.schema,
            )
            self._metrics.record_generation_dropped(self.version)
            logger.info("Deleted generation %s", self.storage.name)

    def migrate(self, batch_size: int = 10) -> ProgressStream[DocumentAction]:
        """
        Stream the migration of every document in this generation.

        Nothing runs until the returned stream is consumed. Actions are
        emitted in completion order within a batch.

        Raises:
            AlreadyRunningError: If migrate() was already called on this instance.
            ValueError: If batch_size < 1.
        """
        validate_batch_size(batch_size)
        if self._run_state is not RunState.NOT_STARTED:
            raise AlreadyRunningError(f"generation {self.storage.name}")
        self._run_state = RunState.RUNNING
        return ProgressStream(lambda: self._run(batch_size), name=self.storage.name)

    async def migrate_and_wait(self, batch_size: int = 10) -> None:
        """
        Run the migration to completion.

        Repeated calls await the same run; batch_size of later calls is ignored.
        """
        if self._wait_task is None:
            stream = self.migrate(batch_size)
            self._wait_task = asyncio.ensure_future(_drain(stream))
        await asyncio.shield(self._wait_task)

    def cancel(self) -> None:
        """
        Stop after the in-flight batch.

        The stream then fails with MigrationCancelledError and the
        generation is left in place.
        """
        self._is_cancelled = True
        logger.info("Cancellation requested for generation %s", self.storage.name)

    async def _run(self, batch_size: int) -> AsyncIterator[DocumentAction]:
        with self._tracer.span(
            "docmigrate.generation.migrate",
            {
                ATTR_COLLECTION_NAME: self._collection.name,
                ATTR_GENERATION_VERSION: self.version,
                ATTR_TARGET_VERSION: self.target_version,
                ATTR_BATCH_SIZE: batch_size,
            },
        ):
            logger.info(
                "Migrating generation %s to v%d in batches of %d",
                self.storage.name,
                self.target_version,
                batch_size,
            )
            migrated = 0
            try:
                with self._metrics.time_generation(self.version):
                    while True:
                        if self._is_cancelled:
                            raise MigrationCancelledError(self._collection.name, self.version)
                        batch = await self.get_batch(batch_size)
                        if not batch:
                            break
                        logger.debug(
                            "Migrating batch of %d documents from %s",
                            len(batch),
                            self.storage.name,
                        )
                        async with aclosing(self._migrate_batch(batch)) as actions:
                            async for action in actions:
                                migrated += 1
                                yield action

                    await self.delete()
                logger.info(
                    "Generation %s migrated: %d documents",
                    self.storage.name,
                    migrated,
                )
            except MigrationCancelledError:
                logger.warning(
                    "Migration of generation %s cancelled after %d documents",
                    self.storage.name,
                    migrated,
                )
                raise
            except Exception as e:
                logger.error("Migration of generation %s failed: %s", self.storage.name, e)
                raise
            finally:
                self._run_state = RunState.DONE

    async def _migrate_batch(self, batch: list[Document]) -> AsyncIterator[DocumentAction]:
        tasks = [asyncio.create_task(self.migrate_document(raw)) for raw in batch]
        try:
            for completed in asyncio.as_completed(tasks):
                yield await completed
        finally:
            # Siblings of a failed document run to completion; none is cut off mid-write.
            await asyncio.gather(*tasks, return_exceptions=True)


async def _drain(stream: ProgressStream[DocumentAction]) -> None:
    async for _ in stream:
        pass


__all__ = [
    "GenerationMigrator",
]
