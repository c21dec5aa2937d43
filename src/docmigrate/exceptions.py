"""
Exceptions raised by the docmigrate package.

Exception Hierarchy:
    MigrationError (base)
    +-- AlreadyRunningError
    +-- MissingStrategyError
    +-- StreamAlreadyConsumedError
    +-- MigrationCancelledError
    +-- CountError
    +-- DocumentMigrationError
        +-- TransformError
        +-- FinalValidationError
        +-- DocumentWriteError

    StorageError (base for storage collaborators)
    +-- DocumentNotFoundError
    +-- DocumentConflictError
    +-- GenerationNotFoundError

    SchemaValidationError

Errors derived from DocumentMigrationError are fatal for the generation that
raised them and abort the whole run. DocumentNotFoundError raised while
removing an original document from an old generation is absorbed.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any


def _dump_document(document: Mapping[str, Any] | None) -> str:
    """Render a document for error messages."""
    try:
        return json.dumps(document, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(document)


class MigrationError(Exception):
    """Base exception for schema migration errors."""

    pass


class AlreadyRunningError(MigrationError):
    """Raised when migrate() is called a second time on the same instance."""

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__(f"Migration has already run for {owner}")


class MissingStrategyError(MigrationError):
    """Raised when the transform mapping has gaps in the version chain."""

    def __init__(self, collection_name: str, missing_versions: Iterable[int]) -> None:
        self.collection_name = collection_name
        self.missing_versions = sorted(missing_versions)
        versions = ", ".join(str(v) for v in self.missing_versions)
        super().__init__(
            f"Collection {collection_name!r} is missing migration strategies "
            f"for versions: {versions}"
        )


class StreamAlreadyConsumedError(MigrationError):
    """Raised when a progress stream gets a second subscriber."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Progress stream {name!r} already has a subscriber")


class MigrationCancelledError(MigrationError):
    """Raised through the progress stream after cancel() was requested."""

    def __init__(self, collection_name: str, version: int | None = None) -> None:
        self.collection_name = collection_name
        self.version = version
        where = f" at generation v{version}" if version is not None else ""
        super().__init__(f"Migration of {collection_name!r} was cancelled{where}")


class CountError(MigrationError):
    """Raised when the undeleted document count of a generation is unavailable."""

    def __init__(self, collection_name: str, version: int, message: str) -> None:
        self.collection_name = collection_name
        self.version = version
        super().__init__(
            f"Could not count documents of {collection_name!r} generation v{version}: {message}"
        )


class DocumentMigrationError(MigrationError):
    """
    Base for fatal per-document failures.

    Attributes:
        version: Schema version of the generation the document came from.
        target_version: Version of the newest schema.
        document: The document being migrated when the failure happened.
    """

    def __init__(
        self,
        message: str,
        *,
        version: int,
        target_version: int,
        document: Mapping[str, Any] | None,
    ) -> None:
        self.version = version
        self.target_version = target_version
        self.document = document
        super().__init__(message)


class TransformError(DocumentMigrationError):
    """Raised when a user-supplied migration strategy throws."""

    def __init__(
        self,
        *,
        version: int,
        target_version: int,
        from_version: int,
        to_version: int,
        document: Mapping[str, Any] | None,
        message: str,
    ) -> None:
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(
            f"Migration strategy v{from_version} -> v{to_version} failed: {message} "
            f"(document: {_dump_document(document)})",
            version=version,
            target_version=target_version,
            document=document,
        )


class FinalValidationError(DocumentMigrationError):
    """Raised when a fully migrated document does not match the newest schema."""

    def __init__(
        self,
        *,
        version: int,
        target_version: int,
        document: Mapping[str, Any] | None,
        message: str,
    ) -> None:
        self.validation_message = message
        super().__init__(
            f"migration of document from v{version} to v{target_version} failed"
            f" - final document does not match final schema: {message}"
            f" - final doc: {_dump_document(document)}",
            version=version,
            target_version=target_version,
            document=document,
        )


class DocumentWriteError(DocumentMigrationError):
    """Raised when the newest collection's storage rejects a migrated document."""

    def __init__(
        self,
        *,
        version: int,
        target_version: int,
        document: Mapping[str, Any] | None,
        message: str,
    ) -> None:
        super().__init__(
            f"Writing migrated document from v{version} into v{target_version} failed: "
            f"{message} (document: {_dump_document(document)})",
            version=version,
            target_version=target_version,
            document=document,
        )


class StorageError(Exception):
    """Base exception for storage backend and registry errors."""

    pass


class DocumentNotFoundError(StorageError):
    """Raised when a document is missing or already removed."""

    def __init__(self, storage: str, doc_id: str) -> None:
        self.storage = storage
        self.doc_id = doc_id
        super().__init__(f"Document {doc_id!r} not found in {storage}")


class DocumentConflictError(StorageError):
    """Raised when a write collides with an existing live document."""

    def __init__(self, storage: str, doc_id: str) -> None:
        self.storage = storage
        self.doc_id = doc_id
        super().__init__(f"Document {doc_id!r} already exists in {storage}")


class GenerationNotFoundError(StorageError):
    """Raised by registries that signal absence with an exception."""

    def __init__(self, collection_name: str, version: int) -> None:
        self.collection_name = collection_name
        self.version = version
        super().__init__(f"No generation v{version} registered for {collection_name!r}")


class SchemaValidationError(Exception):
    """Raised when a document does not satisfy a schema."""

    def __init__(self, version: int, errors: list[str]) -> None:
        self.version = version
        self.errors = errors
        super().__init__(f"Document does not match schema v{version}: " + "; ".join(errors))


__all__ = [
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
