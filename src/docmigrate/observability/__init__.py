"""
Observability utilities for docmigrate.

Tracing follows a composition pattern: every component accepts an optional
``tracer`` and an ``enable_tracing`` flag and falls back to create_tracer().

Example:
    >>> from docmigrate.observability import MockTracer
    >>> tracer = MockTracer()
    >>> orchestrator = MigrationOrchestrator(collection, strategies, tracer=tracer)
"""

from docmigrate.observability.attributes import (
    ATTR_ACTION_KIND,
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_NAME,
    ATTR_DB_SYSTEM,
    ATTR_DOCUMENT_ID,
    ATTR_DOCUMENTS_TOTAL,
    ATTR_GENERATION_COUNT,
    ATTR_GENERATION_VERSION,
    ATTR_STORAGE_NAME,
    ATTR_TARGET_VERSION,
)
from docmigrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_ACTION_KIND",
    "ATTR_BATCH_SIZE",
    "ATTR_COLLECTION_NAME",
    "ATTR_DB_SYSTEM",
    "ATTR_DOCUMENT_ID",
    "ATTR_DOCUMENTS_TOTAL",
    "ATTR_GENERATION_COUNT",
    "ATTR_GENERATION_VERSION",
    "ATTR_STORAGE_NAME",
    "ATTR_TARGET_VERSION",
]
