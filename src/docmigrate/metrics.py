"""
OpenTelemetry metrics for schema migration runs.

Metrics Exposed:
    - docmigrate.documents.handled (Counter): Documents migrated, by ``kind``
    - docmigrate.old_remove.failures (Counter): Originals that could not be
      removed from their old generation (absorbed, not fatal)
    - docmigrate.generations.dropped (Counter): Old generations drained and deleted
    - docmigrate.generation.duration (Histogram): Seconds spent draining a generation

All metrics carry the ``collection`` attribute; generation-level metrics add
``generation.version``.

Metrics are exported only when the application configured a MeterProvider.
With ``enable_metrics=False`` the OpenTelemetry NoOpMeter is used.

Example:
    >>> metrics = MigrationMetrics("heroes")
    >>> metrics.record_document(ActionKind.SUCCESS, version=1)
    >>> with metrics.time_generation(1):
    ...     await drain()
    >>> metrics.get_snapshot().documents_success
    1
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Meter, MeterProvider

from docmigrate.models import ActionKind

METER_NAME = "docmigrate"

# Module-level meter instance
_meter: Meter | None = None


def _get_meter() -> Meter:
    """Get or create the meter from the global MeterProvider."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(METER_NAME)
    return _meter


def reset_meter() -> None:
    """
    Reset the global meter instance.

    Useful for testing to ensure fresh meter state between tests.
    """
    global _meter
    _meter = None


@dataclass(frozen=True)
class MigrationMetricSnapshot:
    """
    Locally accumulated metric values of one MigrationMetrics instance.

    Attributes:
        documents_success: Documents written into the newest collection.
        documents_deleted: Documents dropped by a strategy.
        old_remove_failures: Absorbed failures removing originals.
        generations_dropped: Generations drained and deleted.
        generation_durations: Seconds spent per generation version.
    """

    documents_success: int = 0
    documents_deleted: int = 0
    old_remove_failures: int = 0
    generations_dropped: int = 0
    generation_durations: dict[int, float] = field(default_factory=dict)

    @property
    def documents_handled(self) -> int:
        return self.documents_success + self.documents_deleted

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents_success": self.documents_success,
            "documents_deleted": self.documents_deleted,
            "old_remove_failures": self.old_remove_failures,
            "generations_dropped": self.generations_dropped,
            "generation_durations": dict(self.generation_durations),
        }


class MigrationMetrics:
    """
    Metric instruments for migrating one collection.

    Args:
        collection_name: Value of the ``collection`` attribute.
        enable_metrics: Whether to record to OpenTelemetry (default True).
        meter_provider: Explicit provider; defaults to the global one.
    """

    def __init__(
        self,
        collection_name: str,
        *,
        enable_metrics: bool = True,
        meter_provider: MeterProvider | None = None,
    ) -> None:
        self.collection_name = collection_name
        self.enable_metrics = enable_metrics

        if not enable_metrics:
            meter: Meter = metrics.NoOpMeter(METER_NAME)
        elif meter_provider is not None:
            meter = meter_provider.get_meter(METER_NAME)
        else:
            meter = _get_meter()

        self._documents_counter = meter.create_counter(
            name="docmigrate.documents.handled",
            unit="documents",
            description="Documents migrated out of old schema generations",
        )
        self._remove_failures_counter = meter.create_counter(
            name="docmigrate.old_remove.failures",
            unit="documents",
            description="Original documents that could not be removed from their old generation",
        )
        self._generations_counter = meter.create_counter(
            name="docmigrate.generations.dropped",
            unit="generations",
            description="Old schema generations drained and deleted",
        )
        self._generation_duration = meter.create_histogram(
            name="docmigrate.generation.duration",
            unit="s",
            description="Time spent draining one old schema generation",
        )

        # Local totals for get_snapshot()
        self._success = 0
        self._deleted = 0
        self._remove_failures = 0
        self._generations = 0
        self._durations: dict[int, float] = {}

    def _attributes(self, version: int | None = None) -> dict[str, Any]:
        attrs: dict[str, Any] = {"collection": self.collection_name}
        if version is not None:
            attrs["generation.version"] = version
        return attrs

    def record_document(self, kind: ActionKind, version: int) -> None:
        self._documents_counter.add(1, {**self._attributes(version), "kind": kind.value})
        if kind is ActionKind.SUCCESS:
            self._success += 1
        else:
            self._deleted += 1

    def record_remove_failure(self, version: int, error_type: str | None = None) -> None:
        attrs = self._attributes(version)
        if error_type:
            attrs["error_type"] = error_type
        self._remove_failures_counter.add(1, attrs)
        self._remove_failures += 1

    def record_generation_dropped(self, version: int) -> None:
        self._generations_counter.add(1, self._attributes(version))
        self._generations += 1

    def record_generation_duration(self, version: int, duration_seconds: float) -> None:
        self._generation_duration.record(duration_seconds, self._attributes(version))
        self._durations[version] = self._durations.get(version, 0.0) + duration_seconds

    @contextmanager
    def time_generation(self, version: int) -> Generator[None, None, None]:
        """Record the time spent in the block as the generation's duration."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_generation_duration(version, time.perf_counter() - start)

    def get_snapshot(self) -> MigrationMetricSnapshot:
        return MigrationMetricSnapshot(
            documents_success=self._success,
            documents_deleted=self._deleted,
            old_remove_failures=self._remove_failures,
            generations_dropped=self._generations,
            generation_durations=dict(self._durations),
        )


__all__ = [
    "METER_NAME",
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    "reset_meter",
]
