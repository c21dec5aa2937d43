"""
Shared pytest fixtures for the docmigrate library tests.

This module provides:
- Storage fixtures (in_memory_backend, in_memory_registry)
- Collection fixtures (hero_collection, identity_strategies)
- SQLite fixtures (sqlite_connection, sqlite_backend, sqlite_registry)
- Observability fixtures (mock_tracer, metric_reader, meter_provider)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import aiosqlite
import pytest
import pytest_asyncio
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from docmigrate.collection import Collection
from docmigrate.observability import MockTracer
from docmigrate.schema import DocumentSchema
from docmigrate.stores.in_memory import InMemoryGenerationRegistry, InMemoryStorageBackend
from docmigrate.stores.sqlite import SQLiteGenerationRegistry, SQLiteStorageBackend
from docmigrate.strategies import MigrationStrategies
from tests.fixtures import COLLECTION_NAME, HERO_V3, identity

# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that use SQLite (aiosqlite)")


# =============================================================================
# In-Memory Storage Fixtures
# =============================================================================


@pytest.fixture
def in_memory_backend() -> InMemoryStorageBackend:
    """Provide a fresh in-memory storage backend with tracing disabled."""
    return InMemoryStorageBackend(enable_tracing=False)


@pytest.fixture
def in_memory_registry() -> InMemoryGenerationRegistry:
    """Provide a fresh in-memory generation registry."""
    return InMemoryGenerationRegistry()


# =============================================================================
# Collection Fixtures
# =============================================================================


@pytest.fixture
def hero_collection(
    in_memory_backend: InMemoryStorageBackend,
    in_memory_registry: InMemoryGenerationRegistry,
) -> Collection:
    """
    Provide the newest (v3) heroes collection on in-memory storage.

    Returns:
        Collection bound to in_memory_backend and in_memory_registry.
    """
    return Collection(
        name=COLLECTION_NAME,
        schema=DocumentSchema.from_definition(HERO_V3),
        backend=in_memory_backend,
        registry=in_memory_registry,
    )


@pytest.fixture
def identity_strategies() -> MigrationStrategies:
    """Provide identity strategies for v1 -> v2 and v2 -> v3."""
    return MigrationStrategies({2: identity, 3: identity})


# =============================================================================
# SQLite Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def sqlite_connection() -> AsyncGenerator[aiosqlite.Connection, None]:
    """
    Provide a raw aiosqlite connection to an in-memory database.

    The connection is automatically closed after the test.
    """
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row

    yield conn

    await conn.close()


@pytest_asyncio.fixture
async def sqlite_backend(sqlite_connection: aiosqlite.Connection) -> SQLiteStorageBackend:
    """Provide an initialized SQLite storage backend."""
    backend = SQLiteStorageBackend(sqlite_connection, enable_tracing=False)
    await backend.initialize()
    return backend


@pytest_asyncio.fixture
async def sqlite_registry(sqlite_connection: aiosqlite.Connection) -> SQLiteGenerationRegistry:
    """Provide an initialized SQLite generation registry."""
    registry = SQLiteGenerationRegistry(sqlite_connection, enable_tracing=False)
    await registry.initialize()
    return registry


# =============================================================================
# Observability Fixtures
# =============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a MockTracer that records spans."""
    return MockTracer()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Provide an InMemoryMetricReader for inspecting collected metrics."""
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> Any:
    """
    Provide a MeterProvider wired to metric_reader.

    Passed explicitly to MigrationMetrics instead of being installed
    globally, since the global provider can only be set once per process.
    """
    provider = MeterProvider(metric_readers=[metric_reader])
    yield provider
    provider.shutdown()
