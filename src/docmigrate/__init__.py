"""
docmigrate - Schema migration engine for versioned document collections.

This library provides:
- MigrationOrchestrator: drains every old schema generation of a collection
- GenerationMigrator: migrates the documents of one generation in batches
- MigrationStrategies: per-version document transforms, sync or async
- ProgressStream: cold, single-subscriber progress reporting
- In-memory and SQLite (aiosqlite) storage backends and generation registries
- OpenTelemetry tracing and metrics
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("docmigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from docmigrate.codecs import (
    Crypter,
    CrypterFactory,
    KeyCompressor,
    KeyCompressorFactory,
    PassthroughCrypter,
    PassthroughKeyCompressor,
)
from docmigrate.collection import Collection
from docmigrate.exceptions import (
    AlreadyRunningError,
    CountError,
    DocumentConflictError,
    DocumentMigrationError,
    DocumentNotFoundError,
    DocumentWriteError,
    FinalValidationError,
    GenerationNotFoundError,
    MigrationCancelledError,
    MigrationError,
    MissingStrategyError,
    SchemaValidationError,
    StorageError,
    StreamAlreadyConsumedError,
    TransformError,
)
from docmigrate.generation import GenerationMigrator
from docmigrate.metrics import MigrationMetrics, MigrationMetricSnapshot
from docmigrate.models import (
    ActionKind,
    Document,
    DocumentAction,
    GenerationDescriptor,
    MigrationConfig,
    MigrationState,
    RunState,
)
from docmigrate.orchestrator import MigrationOrchestrator
from docmigrate.schema import DocumentSchema, Schema
from docmigrate.stores import (
    GenerationRegistry,
    InMemoryGenerationRegistry,
    InMemoryStorageBackend,
    SQLiteGenerationRegistry,
    SQLiteStorageBackend,
    StorageBackend,
    StorageHandle,
)
from docmigrate.strategies import MigrationStrategies, MigrationStrategy
from docmigrate.stream import ProgressStream

__all__ = [
    # Version
    "__version__",
    # Migration
    "MigrationOrchestrator",
    "GenerationMigrator",
    "MigrationStrategies",
    "MigrationStrategy",
    "ProgressStream",
    # Models
    "ActionKind",
    "Document",
    "DocumentAction",
    "GenerationDescriptor",
    "MigrationConfig",
    "MigrationState",
    "RunState",
    # Collection and schema
    "Collection",
    "DocumentSchema",
    "Schema",
    "KeyCompressor",
    "KeyCompressorFactory",
    "Crypter",
    "CrypterFactory",
    "PassthroughKeyCompressor",
    "PassthroughCrypter",
    # Stores
    "StorageBackend",
    "StorageHandle",
    "GenerationRegistry",
    "InMemoryStorageBackend",
    "InMemoryGenerationRegistry",
    "SQLiteStorageBackend",
    "SQLiteGenerationRegistry",
    # Metrics
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    # Exceptions
    "MigrationError",
    "AlreadyRunningError",
    "MissingStrategyError",
    "StreamAlreadyConsumedError",
    "MigrationCancelledError",
    "CountError",
    "DocumentMigrationError",
    "TransformError",
    "FinalValidationError",
    "DocumentWriteError",
    "StorageError",
    "DocumentNotFoundError",
    "DocumentConflictError",
    "GenerationNotFoundError",
    "SchemaValidationError",
]
