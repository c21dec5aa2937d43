"""
Migration strategies: user-supplied per-version document transforms.

A strategy registered for version N turns a document of schema N-1 into a
document of schema N. Returning None (or an empty document) drops the
document. Strategies may be plain functions or coroutine functions.

Example:
    >>> strategies = MigrationStrategies()
    >>>
    >>> @strategies.register(2)
    ... def add_age(doc: dict) -> dict:
    ...     doc["age"] = 0
    ...     return doc
    >>>
    >>> @strategies.register(3)
    ... async def drop_anonymous(doc: dict) -> dict | None:
    ...     return doc if doc.get("name") else None
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import TYPE_CHECKING

from docmigrate.exceptions import MissingStrategyError
from docmigrate.models import Document

if TYPE_CHECKING:
    from docmigrate.schema import Schema

logger = logging.getLogger(__name__)

MigrationStrategy = Callable[[Document], Document | None | Awaitable[Document | None]]


def _normalize_version(version: int | str) -> int:
    if isinstance(version, bool):
        raise TypeError("Strategy version must be an int, got bool")
    if isinstance(version, int):
        return version
    if isinstance(version, str) and version.strip().lstrip("-").isdigit():
        return int(version)
    raise ValueError(f"Strategy version must be an integer, got {version!r}")


class MigrationStrategies(Mapping[int, MigrationStrategy]):
    """
    Ordered mapping from target schema version to migration strategy.

    Keys may be given as ints or numeric strings; iteration is in ascending
    version order.

    Attributes:
        _strategies: Registered strategies by target version.
    """

    def __init__(
        self,
        strategies: Mapping[int, MigrationStrategy] | Mapping[str, MigrationStrategy] | None = None,
    ) -> None:
        self._strategies: dict[int, MigrationStrategy] = {}
        for version, strategy in (strategies or {}).items():
            self.add(version, strategy)

    def add(self, version: int | str, strategy: MigrationStrategy) -> None:
        """
        Register a strategy for a target version.

        Raises:
            TypeError: If strategy is not callable.
            ValueError: If version is not an integer or already registered.
        """
        target = _normalize_version(version)
        if not callable(strategy):
            raise TypeError(f"Strategy for version {target} is not callable: {strategy!r}")
        if target in self._strategies:
            raise ValueError(f"A strategy for version {target} is already registered")
        self._strategies[target] = strategy
        logger.debug("Registered migration strategy for version %d", target)

    def register(self, version: int | str) -> Callable[[MigrationStrategy], MigrationStrategy]:
        """Decorator form of add()."""

        def decorator(strategy: MigrationStrategy) -> MigrationStrategy:
            self.add(version, strategy)
            return strategy

        return decorator

    def __getitem__(self, version: int) -> MigrationStrategy:
        return self._strategies[version]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._strategies))

    def __len__(self) -> int:
        return len(self._strategies)

    @staticmethod
    def required_versions(schema: Schema) -> range:
        """
        Versions that need a strategy to migrate every previous version of schema.

        Returns:
            ``range(oldest + 1, schema.version + 1)``, empty without previous versions.
        """
        previous = [v for v in schema.previous_versions if v < schema.version]
        if not previous:
            return range(0)
        return range(min(previous) + 1, schema.version + 1)

    def missing_for(self, schema: Schema) -> list[int]:
        return [v for v in self.required_versions(schema) if v not in self._strategies]

    def validate_for(self, schema: Schema, collection_name: str = "") -> None:
        """
        Check that the version chain has no gaps.

        Raises:
            MissingStrategyError: Listing every missing version.
        """
        missing = self.missing_for(schema)
        if missing:
            raise MissingStrategyError(collection_name, missing)

    async def apply(self, version: int, doc: Document) -> Document | None:
        """
        Run the strategy for ``version`` on a private deep copy of ``doc``.

        Returns:
            The transformed document, or None if the strategy dropped it.

        Raises:
            KeyError: If no strategy is registered for version.
            TypeError: If the strategy returned something that is not a mapping.
        """
        result = self._strategies[version](copy.deepcopy(doc))
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        if not isinstance(result, Mapping):
            raise TypeError(
                f"Strategy for version {version} returned {type(result).__name__}, "
                "expected a document or None"
            )
        return dict(result)


__all__ = [
    "MigrationStrategy",
    "MigrationStrategies",
]
