"""
Standard span and metric attributes for docmigrate.

Example:
    >>> from docmigrate.observability.attributes import (
    ...     ATTR_COLLECTION_NAME,
    ...     ATTR_GENERATION_VERSION,
    ... )
    >>>
    >>> with tracer.span(
    ...     "docmigrate.generation.migrate",
    ...     {
    ...         ATTR_COLLECTION_NAME: "heroes",
    ...         ATTR_GENERATION_VERSION: 1,
    ...     },
    ... ):
    ...     pass
"""

# =============================================================================
# Collection Attributes
# =============================================================================

ATTR_COLLECTION_NAME = "docmigrate.collection.name"
"""Name of the newest collection being migrated into."""

ATTR_TARGET_VERSION = "docmigrate.collection.version"
"""Schema version of the newest collection (integer)."""

# =============================================================================
# Generation Attributes
# =============================================================================

ATTR_GENERATION_VERSION = "docmigrate.generation.version"
"""Schema version of the old generation being drained (integer)."""

ATTR_GENERATION_COUNT = "docmigrate.generation.count"
"""Number of old generations discovered for a run (integer)."""

# =============================================================================
# Document / Batch Attributes
# =============================================================================

ATTR_DOCUMENT_ID = "docmigrate.document.id"
"""Storage identifier of the document being migrated."""

ATTR_ACTION_KIND = "docmigrate.action.kind"
"""Outcome of a document migration ('success' or 'deleted')."""

ATTR_BATCH_SIZE = "docmigrate.batch.size"
"""Maximum documents fetched per batch (integer)."""

ATTR_DOCUMENTS_TOTAL = "docmigrate.documents.total"
"""Undeleted documents across all generations at run start (integer)."""

# =============================================================================
# Storage Attributes
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (OpenTelemetry semantic convention)."""

ATTR_STORAGE_NAME = "docmigrate.storage.name"
"""Storage handle name, '<collection>-<version>'."""

__all__ = [
    "ATTR_COLLECTION_NAME",
    "ATTR_TARGET_VERSION",
    "ATTR_GENERATION_VERSION",
    "ATTR_GENERATION_COUNT",
    "ATTR_DOCUMENT_ID",
    "ATTR_ACTION_KIND",
    "ATTR_BATCH_SIZE",
    "ATTR_DOCUMENTS_TOTAL",
    "ATTR_DB_SYSTEM",
    "ATTR_STORAGE_NAME",
]
