"""
ProgressStream - cold, single-subscriber progress stream.

A ProgressStream wraps a factory for an async iterator. Nothing runs until
the stream is consumed, either pulled with ``async for`` or pushed to
callbacks with subscribe(). Each stream accepts exactly one consumer.

Usage:
    >>> stream = orchestrator.migrate(batch_size=20)
    >>>
    >>> # Pull
    >>> async for state in stream:
    ...     print(f"{state.percent}% ({state.handled}/{state.total})")
    >>>
    >>> # Or push
    >>> task = stream.subscribe(
    ...     on_value=lambda state: print(state.percent),
    ...     on_error=lambda exc: print(f"failed: {exc}"),
    ...     on_complete=lambda: print("done"),
    ... )
    >>> await task
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Generic, TypeVar

from docmigrate.exceptions import StreamAlreadyConsumedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProgressStream(Generic[T]):
    """
    Cold, single-subscriber stream of progress values.

    Signals:
        - values, in production order
        - at most one terminal signal: an error or completion
        - no value after a terminal signal

    Attributes:
        _source: Factory creating the underlying async iterator on first consumption.
        _consumed: Whether a consumer has attached.
        _task: Pump task created by subscribe().
    """

    def __init__(self, source: Callable[[], AsyncIterator[T]], *, name: str) -> None:
        self._source = source
        self._name = name
        self._consumed = False
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    def _claim(self) -> AsyncIterator[T]:
        if self._consumed:
            raise StreamAlreadyConsumedError(self._name)
        self._consumed = True
        return self._source()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._claim()

    def subscribe(
        self,
        on_value: Callable[[T], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> asyncio.Task[None]:
        """
        Push values to callbacks from a background task.

        Must be called from a running event loop. If on_error is None, the
        returned task fails with the stream's error instead.

        Raises:
            StreamAlreadyConsumedError: If the stream already has a consumer.
        """
        iterator = self._claim()

        async def pump() -> None:
            try:
                async with aclosing(iterator) as values:
                    async for value in values:
                        if on_value is not None:
                            on_value(value)
            except Exception as exc:
                if on_error is None:
                    raise
                logger.debug("Stream %s failed: %s", self._name, exc)
                on_error(exc)
                return
            if on_complete is not None:
                on_complete()

        self._task = asyncio.create_task(pump(), name=f"progress-stream:{self._name}")
        return self._task

    async def collect(self) -> list[T]:
        """Consume the stream and return every value."""
        return [value async for value in self]

    async def last(self) -> T | None:
        """Consume the stream and return its final value (None if it had none)."""
        final: T | None = None
        async for value in self:
            final = value
        return final

    def __repr__(self) -> str:
        return f"ProgressStream(name={self._name!r}, consumed={self._consumed})"


__all__ = [
    "ProgressStream",
]
