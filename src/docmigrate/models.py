"""
Value types threaded through a schema migration run.

This module provides:
- ActionKind / DocumentAction: per-document outcome emitted by a generation
- MigrationState: aggregate progress emitted by the orchestrator
- GenerationDescriptor: identifies one old schema generation
- RunState: single-shot guard state for migrate()
- MigrationConfig: tunables for a migration run
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

Document = dict[str, Any]
"""A plain document as stored or as seen by migration strategies."""


class ActionKind(Enum):
    """
    Outcome of migrating a single document.

    Attributes:
        SUCCESS: The document was transformed, validated and written
            into the newest collection.
        DELETED: A migration strategy returned an empty result, so the
            document was dropped.
    """

    SUCCESS = "success"
    """Document written into the newest collection."""

    DELETED = "deleted"
    """Document dropped by a migration strategy."""


@dataclass(frozen=True)
class DocumentAction:
    """
    Outcome of one processed document.

    Attributes:
        original: The document as decoded from the old generation.
        migrated: The fully migrated document, or None when deleted.
        kind: SUCCESS or DELETED. DELETED iff migrated is None.
    """

    original: Document
    migrated: Document | None
    kind: ActionKind

    def __post_init__(self) -> None:
        """Keep kind consistent with migrated."""
        if (self.kind is ActionKind.DELETED) != (self.migrated is None):
            raise ValueError(
                f"DocumentAction kind {self.kind.value!r} is inconsistent with "
                f"migrated={'None' if self.migrated is None else 'document'}"
            )

    @classmethod
    def success(cls, original: Document, migrated: Document) -> DocumentAction:
        return cls(original=original, migrated=migrated, kind=ActionKind.SUCCESS)

    @classmethod
    def deleted(cls, original: Document) -> DocumentAction:
        return cls(original=original, migrated=None, kind=ActionKind.DELETED)


@dataclass(frozen=True)
class GenerationDescriptor:
    """
    Identifies one old schema generation of a collection.

    Attributes:
        version: Schema version number of the generation.
        schema_definition: Opaque schema definition stored in the registry.
    """

    version: int
    schema_definition: Any


class RunState(Enum):
    """
    Single-shot lifecycle of a migrate() call.

    Transitions:
        NOT_STARTED -> RUNNING -> DONE
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    DONE = "done"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class MigrationState:
    """
    Aggregate progress of a migration run.

    Owned and mutated only by the orchestrator; subscribers always receive
    copies (see snapshot()).

    Invariants:
        handled == success + deleted at every emission.
        percent is 100 only on the terminal emission (done=True).

    Attributes:
        done: True once the last generation was drained and deleted.
        total: Undeleted documents across all generations, fixed at start.
        handled: Documents for which an outcome was produced.
        success: Documents written into the newest collection.
        deleted: Documents dropped by a strategy.
        percent: Rounded completion percentage.
    """

    done: bool = False
    total: int = 0
    handled: int = 0
    success: int = 0
    deleted: int = 0
    percent: int = 0

    @property
    def progress_percent(self) -> float:
        """Uncapped completion percentage as a float (0.0 when total is 0)."""
        if self.total == 0:
            return 100.0 if self.done else 0.0
        return self.handled / self.total * 100

    def record(self, action: DocumentAction) -> None:
        """Count one document outcome and recompute percent."""
        self.handled += 1
        if action.kind is ActionKind.SUCCESS:
            self.success += 1
        else:
            self.deleted += 1
        if self.total > 0:
            # 100 is reserved for the terminal emission
            self.percent = min(99, _round_half_up(self.handled / self.total * 100))

    def finish(self) -> None:
        """Mark the run complete."""
        self.done = True
        self.percent = 100

    def snapshot(self) -> MigrationState:
        """Return an independent copy for emission."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "done": self.done,
            "total": self.total,
            "handled": self.handled,
            "success": self.success,
            "deleted": self.deleted,
            "percent": self.percent,
        }


@dataclass(frozen=True)
class MigrationConfig:
    """
    Configuration for a migration run.

    Attributes:
        batch_size: Documents fetched and migrated concurrently per batch (default 10).
        enable_tracing: Emit OpenTelemetry spans (default True).
        enable_metrics: Record OpenTelemetry metrics (default True).

    Example:
        >>> config = MigrationConfig(batch_size=50)
        >>> config.batch_size
        50
    """

    batch_size: int = 10
    enable_tracing: bool = True
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        validate_batch_size(self.batch_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "enable_tracing": self.enable_tracing,
            "enable_metrics": self.enable_metrics,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """
        Create from dictionary, ignoring unknown keys.

        Args:
            data: Dictionary as produced by to_dict().

        Returns:
            MigrationConfig instance.
        """
        return cls(
            batch_size=data.get("batch_size", 10),
            enable_tracing=data.get("enable_tracing", True),
            enable_metrics=data.get("enable_metrics", True),
        )


def validate_batch_size(batch_size: int) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise TypeError(f"batch_size must be an int, got {type(batch_size).__name__}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return batch_size


__all__ = [
    "Document",
    "ActionKind",
    "DocumentAction",
    "GenerationDescriptor",
    "RunState",
    "MigrationState",
    "MigrationConfig",
    "validate_batch_size",
]
