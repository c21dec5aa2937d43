"""
Unit tests for ProgressStream.

Tests cover:
- Cold start: nothing runs before a consumer attaches
- Single-subscriber enforcement
- Pull consumption, collect() and last()
- Push consumption via subscribe() callbacks
"""

import asyncio
from collections.abc import AsyncIterator

import pytest

from docmigrate.exceptions import StreamAlreadyConsumedError
from docmigrate.stream import ProgressStream


def _counting_stream(started: list[bool], count: int = 3) -> ProgressStream[int]:
    async def source() -> AsyncIterator[int]:
        started.append(True)
        for i in range(count):
            yield i

    return ProgressStream(source, name="numbers")


def _failing_stream() -> ProgressStream[int]:
    async def source() -> AsyncIterator[int]:
        yield 1
        raise RuntimeError("boom")

    return ProgressStream(source, name="failing")


class TestColdStart:
    """Tests for lazy start."""

    @pytest.mark.asyncio
    async def test_source_not_started_before_consumption(self) -> None:
        started: list[bool] = []
        stream = _counting_stream(started)
        await asyncio.sleep(0)
        assert started == []
        assert stream.is_consumed is False

    @pytest.mark.asyncio
    async def test_source_started_on_iteration(self) -> None:
        started: list[bool] = []
        values = [value async for value in _counting_stream(started)]
        assert values == [0, 1, 2]
        assert started == [True]


class TestSingleSubscriber:
    """Tests for the single-consumer rule."""

    @pytest.mark.asyncio
    async def test_second_iteration_rejected(self) -> None:
        stream = _counting_stream([])
        await stream.collect()
        with pytest.raises(StreamAlreadyConsumedError):
            await stream.collect()

    @pytest.mark.asyncio
    async def test_subscribe_after_iteration_rejected(self) -> None:
        stream = _counting_stream([])
        await stream.collect()
        with pytest.raises(StreamAlreadyConsumedError):
            stream.subscribe()

    def test_repr(self) -> None:
        assert repr(_counting_stream([])) == "ProgressStream(name='numbers', consumed=False)"


class TestPull:
    """Tests for pull-based consumption."""

    @pytest.mark.asyncio
    async def test_last(self) -> None:
        assert await _counting_stream([]).last() == 2

    @pytest.mark.asyncio
    async def test_last_of_empty_stream(self) -> None:
        assert await _counting_stream([], count=0).last() is None

    @pytest.mark.asyncio
    async def test_error_propagates(self) -> None:
        received = []
        with pytest.raises(RuntimeError, match="boom"):
            async for value in _failing_stream():
                received.append(value)
        assert received == [1]


class TestSubscribe:
    """Tests for push-based consumption."""

    @pytest.mark.asyncio
    async def test_values_then_complete(self) -> None:
        events: list[object] = []
        task = _counting_stream([]).subscribe(
            on_value=events.append,
            on_error=lambda exc: events.append(("error", exc)),
            on_complete=lambda: events.append("complete"),
        )
        await task
        assert events == [0, 1, 2, "complete"]

    @pytest.mark.asyncio
    async def test_error_then_no_complete(self) -> None:
        events: list[object] = []
        errors: list[BaseException] = []
        task = _failing_stream().subscribe(
            on_value=events.append,
            on_error=errors.append,
            on_complete=lambda: events.append("complete"),
        )
        await task
        assert events == [1]
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_error_without_handler_fails_task(self) -> None:
        task = _failing_stream().subscribe()
        with pytest.raises(RuntimeError, match="boom"):
            await task

    @pytest.mark.asyncio
    async def test_subscribe_marks_consumed(self) -> None:
        stream = _counting_stream([])
        task = stream.subscribe()
        assert stream.is_consumed is True
        await task
