"""
MigrationOrchestrator - migrates every old generation of a collection.

The orchestrator discovers which older schema generations of a collection
still exist, counts their undeleted documents and drains them one after
another (oldest first) through GenerationMigrators, reporting aggregate
progress as a stream of MigrationState snapshots.

Emission sequence of a successful run:
    1. one state with total set and handled == 0
    2. one state per migrated document
    3. one terminal state with done=True and percent=100

Usage:
    >>> orchestrator = MigrationOrchestrator(collection, strategies)
    >>> async for state in orchestrator.migrate(batch_size=10):
    ...     print(f"{state.percent}% ({state.handled}/{state.total})")
    >>>
    >>> # or, without progress reporting
    >>> final = await MigrationOrchestrator(collection, strategies).migrate_and_wait()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing

from docmigrate.collection import Collection
from docmigrate.exceptions import (
    AlreadyRunningError,
    CountError,
    GenerationNotFoundError,
    MigrationCancelledError,
)
from docmigrate.generation import GenerationMigrator
from docmigrate.metrics import MigrationMetrics
from docmigrate.models import (
    GenerationDescriptor,
    MigrationConfig,
    MigrationState,
    RunState,
    validate_batch_size,
)
from docmigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_NAME,
    ATTR_DOCUMENTS_TOTAL,
    ATTR_GENERATION_COUNT,
    ATTR_TARGET_VERSION,
    Tracer,
    create_tracer,
)
from docmigrate.strategies import MigrationStrategies, MigrationStrategy
from docmigrate.stream import ProgressStream

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Migrates all documents of older generations into the newest collection.

    Strategies are checked at construction time: every version between the
    oldest previous version and the newest one needs a strategy.

    migrate() may be called once per instance.

    Example:
        >>> strategies = MigrationStrategies()
        >>> @strategies.register(1)
        ... def add_age(doc):
        ...     doc["age"] = 0
        ...     return doc
        >>> orchestrator = MigrationOrchestrator(collection, strategies)
        >>> state = await orchestrator.migrate_and_wait()
        >>> state.done
        True
    """

    def __init__(
        self,
        collection: Collection,
        strategies: MigrationStrategies | Mapping[int | str, MigrationStrategy],
        *,
        config: MigrationConfig | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            collection: The newest collection to migrate into.
            strategies: Strategies by target version.
            config: Batch size and observability switches.
            metrics: Metrics recorder (one is created from config if None).
            tracer: Optional custom Tracer.
            enable_tracing: Overrides config.enable_tracing when given.

        Raises:
            MissingStrategyError: If a required strategy is missing.
        """
        self._config = config or MigrationConfig()
        if enable_tracing is None:
            enable_tracing = self._config.enable_tracing
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

        if not isinstance(strategies, MigrationStrategies):
            strategies = MigrationStrategies(strategies)
        strategies.validate_for(collection.schema, collection.name)

        self._collection = collection
        self._strategies = strategies
        self._metrics = metrics or MigrationMetrics(
            collection.name,
            enable_metrics=self._config.enable_metrics,
        )

        self._state = MigrationState()
        self._run_state = RunState.NOT_STARTED
        self._is_cancelled = False
        self._generations: list[GenerationMigrator] = []
        self._active: GenerationMigrator | None = None
        self._wait_task: asyncio.Future[MigrationState] | None = None

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def config(self) -> MigrationConfig:
        return self._config

    @property
    def metrics(self) -> MigrationMetrics:
        return self._metrics

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def state(self) -> MigrationState:
        """Copy of the current aggregate state."""
        return self._state.snapshot()

    @property
    def generations(self) -> list[GenerationMigrator]:
        """Generations discovered by the current run, oldest first."""
        return list(self._generations)

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    async def discover_generations(self) -> list[GenerationMigrator]:
        """
        Look up every previous version in the registry.

        Versions without a registry entry were already migrated and are
        skipped. Lookups run concurrently.

        Returns:
            One GenerationMigrator per existing generation, ascending by version.
        """
        schema = self._collection.schema
        versions = sorted({v for v in schema.previous_versions if v < schema.version})
        descriptors = await asyncio.gather(*(self._lookup(v) for v in versions))

        found = sorted(
            (descriptor for descriptor in descriptors if descriptor is not None),
            key=lambda descriptor: descriptor.version,
        )
        logger.debug(
            "Found %d old generations of %s: %s",
            len(found),
            self._collection.name,
            [descriptor.version for descriptor in found],
        )
        return [
            GenerationMigrator(
                descriptor,
                self._collection,
                self._strategies,
                metrics=self._metrics,
                tracer=self._tracer,
            )
            for descriptor in found
        ]

    async def _lookup(self, version: int) -> GenerationDescriptor | None:
        try:
            return await self._collection.registry.lookup_generation(
                self._collection.name,
                version,
            )
        except GenerationNotFoundError:
            return None

    async def count_total(self, generations: list[GenerationMigrator]) -> int:
        """
        Sum the undeleted documents of all generations.

        Raises:
            CountError: If any generation could not be counted.
        """
        counts = await asyncio.gather(
            *(generation.count_undeleted() for generation in generations),
            return_exceptions=True,
        )
        total = 0
        for generation, count in zip(generations, counts):
            if isinstance(count, BaseException):
                raise CountError(
                    self._collection.name,
                    generation.version,
                    str(count) or type(count).__name__,
                ) from count
            total += count
        return total

    def migrate(self, batch_size: int | None = None) -> ProgressStream[MigrationState]:
        """
        Stream the migration of every old generation.

        Nothing runs until the returned stream is consumed.

        Args:
            batch_size: Documents migrated concurrently (config.batch_size if None).

        Raises:
            AlreadyRunningError: If migrate() was already called on this instance.
            ValueError: If batch_size < 1.
        """
        if batch_size is None:
            batch_size = self._config.batch_size
        validate_batch_size(batch_size)
        if self._run_state is not RunState.NOT_STARTED:
            raise AlreadyRunningError(f"collection {self._collection.name}")
        self._run_state = RunState.RUNNING
        return ProgressStream(lambda: self._run(batch_size), name=self._collection.name)

    async def migrate_and_wait(self, batch_size: int | None = None) -> MigrationState:
        """
        Run the migration to completion and return the final state.

        Repeated calls await the same run; batch_size of later calls is ignored.
        """
        if self._wait_task is None:
            stream = self.migrate(batch_size)
            self._wait_task = asyncio.ensure_future(_last_state(stream))
        return await asyncio.shield(self._wait_task)

    def cancel(self) -> None:
        """
        Stop once the in-flight batch is done.

        The running generation is left in place and the stream fails with
        MigrationCancelledError.
        """
        self._is_cancelled = True
        if self._active is not None:
            self._active.cancel()
        logger.info("Cancellation requested for collection %s", self._collection.name)

    async def _run(self, batch_size: int) -> AsyncIterator[MigrationState]:
        with self._tracer.span(
            "docmigrate.orchestrator.migrate",
            {
                ATTR_COLLECTION_NAME: self._collection.name,
                ATTR_TARGET_VERSION: self._collection.schema.version,
                ATTR_BATCH_SIZE: batch_size,
            },
        ) as span:
            try:
                self._generations = await self.discover_generations()
                self._state.total = await self.count_total(self._generations)
                if span is not None:
                    span.set_attribute(ATTR_GENERATION_COUNT, len(self._generations))
                    span.set_attribute(ATTR_DOCUMENTS_TOTAL, self._state.total)

                logger.info(
                    "Starting migration of %s to v%d: %d generations, %d documents",
                    self._collection.name,
                    self._collection.schema.version,
                    len(self._generations),
                    self._state.total,
                )
                yield self._state.snapshot()

                for generation in self._generations:
                    if self._is_cancelled:
                        raise MigrationCancelledError(self._collection.name, generation.version)
                    self._active = generation
                    async with aclosing(aiter(generation.migrate(batch_size))) as actions:
                        async for action in actions:
                            self._state.record(action)
                            yield self._state.snapshot()
                    self._active = None

                self._state.finish()
                logger.info(
                    "Migration of %s complete: %d migrated, %d deleted",
                    self._collection.name,
                    self._state.success,
                    self._state.deleted,
                )
                yield self._state.snapshot()
            except MigrationCancelledError:
                logger.warning(
                    "Migration of %s cancelled at %d/%d documents",
                    self._collection.name,
                    self._state.handled,
                    self._state.total,
                )
                raise
            except Exception as e:
                logger.error("Migration of %s failed: %s", self._collection.name, e)
                raise
            finally:
                self._active = None
                self._run_state = RunState.DONE


async def _last_state(stream: ProgressStream[MigrationState]) -> MigrationState:
    state = MigrationState()
    async for state in stream:
        pass
    return state


__all__ = [
    "MigrationOrchestrator",
]
