"""Tests for chunked bulk processing."""

from unittest.mock import AsyncMock, patch

import pytest

from configurator.chunking import (
    CHUNK_PROFILES,
    DEFAULT_PROFILE,
    ChunkResult,
    process_in_chunks,
    profile_for,
    split_into_chunks,
)
from configurator.diff import ENTITY_TYPES


class TestSplitIntoChunks:
    """Tests for split_into_chunks."""

    def test_last_chunk_may_be_short(self) -> None:
        """Test chunk boundaries."""
        assert split_into_chunks([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_invalid_size(self) -> None:
        """Test that a chunk size below one is rejected."""
        with pytest.raises(ValueError):
            split_into_chunks([1], 0)


class TestProfiles:
    """Tests for per-entity chunk profiles."""

    def test_known_and_default(self) -> None:
        """Test profile lookup."""
        assert profile_for("Categories").chunk_size == 5
        assert profile_for("Unknown") == DEFAULT_PROFILE

    def test_profiles_are_keyed_by_entity_type(self) -> None:
        """Test that every profile belongs to an entity type the stages look up."""
        assert set(CHUNK_PROFILES) <= set(ENTITY_TYPES)


class TestProcessInChunks:
    """Tests for process_in_chunks."""

    @pytest.mark.asyncio
    async def test_conservation_and_chunk_count(self) -> None:
        """Test that every item is accounted for and ceil(n/size) chunks run."""
        seen: list[list[int]] = []

        async def fn(chunk: list[int]) -> list[int]:
            seen.append(chunk)
            return [i * 10 for i in chunk]

        result = await process_in_chunks(list(range(7)), fn, chunk_size=3, delay_seconds=0)

        assert result.chunks_processed == 3
        assert seen == [[0, 1, 2], [3, 4, 5], [6]]
        assert result.total == 7
        assert result.successes == [(i, i * 10) for i in range(7)]
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_failure_isolation(self) -> None:
        """Test that a failing chunk records its items and later chunks run."""
        error = RuntimeError("boom")

        async def fn(chunk: list[str]) -> str:
            if "c" in chunk:
                raise error
            return "ok"

        result = await process_in_chunks(list("abcdef"), fn, chunk_size=2, delay_seconds=0)

        assert result.chunks_processed == 3
        assert [item for item, _ in result.successes] == ["a", "b", "e", "f"]
        assert result.failures == [("c", error), ("d", error)]
        assert len(result.successes) + len(result.failures) == 6
        assert result.has_failures

    @pytest.mark.asyncio
    async def test_non_list_result_credited_to_every_item(self) -> None:
        """Test that a scalar chunk result is shared by the chunk's items."""
        result = await process_in_chunks(
            [1, 2], AsyncMock(return_value="done"), chunk_size=5, delay_seconds=0
        )
        assert result.successes == [(1, "done"), (2, "done")]

    @pytest.mark.asyncio
    async def test_short_result_list_is_lenient(self) -> None:
        """Test that a short result list still credits every item."""
        result = await process_in_chunks(
            [1, 2, 3], AsyncMock(return_value=["x"]), chunk_size=3, delay_seconds=0
        )
        assert result.successes == [(1, "x"), (2, ["x"]), (3, ["x"])]

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        """Test that no chunk runs for an empty input."""
        fn = AsyncMock()
        result = await process_in_chunks([], fn)

        assert result == ChunkResult()
        fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delay_between_chunks_only(self) -> None:
        """Test that the delay runs between chunks, never after the last."""
        with patch("configurator.chunking.asyncio.sleep", new=AsyncMock()) as sleep:
            await process_in_chunks(
                [1, 2, 3], AsyncMock(return_value=None), chunk_size=1, delay_seconds=0.5
            )

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_invalid_arguments(self) -> None:
        """Test argument validation."""
        with pytest.raises(ValueError, match="chunk_size"):
            await process_in_chunks([1], AsyncMock(), chunk_size=0)
        with pytest.raises(ValueError, match="delay_seconds"):
            await process_in_chunks([1], AsyncMock(), delay_seconds=-1)
