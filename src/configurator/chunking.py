"""Chunked bulk processing with inter-chunk delays.

Large collections are split into fixed-size chunks processed one after the
other, with a pause between chunks to stay under the remote rate limit. A
failing chunk never stops the run: its items are recorded as failures and the
next chunk proceeds.

Invariant: ``len(successes) + len(failures) == len(items)`` for every input.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .config import DEFAULT_CHUNK_DELAY_SECONDS, DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# Items per chunk for entity types processed in small batches
MODELS_CHUNK_SIZE = 5
CATEGORIES_CHUNK_SIZE = 5
SHIPPING_ZONES_CHUNK_SIZE = 3

CATEGORY_CHUNK_DELAY_SECONDS = 0.2


@dataclass(frozen=True)
class ChunkProfile:
    """Chunk size and delay used for one entity type."""

    chunk_size: int
    delay_seconds: float


DEFAULT_PROFILE = ChunkProfile(DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_DELAY_SECONDS)

CHUNK_PROFILES: dict[str, ChunkProfile] = {
    "Products": ChunkProfile(DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_DELAY_SECONDS),
    "Product Types": ChunkProfile(10, DEFAULT_CHUNK_DELAY_SECONDS),
    "Categories": ChunkProfile(CATEGORIES_CHUNK_SIZE, CATEGORY_CHUNK_DELAY_SECONDS),
    "Models": ChunkProfile(MODELS_CHUNK_SIZE, 1.0),
    "Warehouses": ChunkProfile(5, 1.0),
    "Shipping Zones": ChunkProfile(SHIPPING_ZONES_CHUNK_SIZE, 1.0),
}


def profile_for(entity_type: str) -> ChunkProfile:
    """Chunk profile for an entity type (default profile when unlisted)."""
    return CHUNK_PROFILES.get(entity_type, DEFAULT_PROFILE)


@dataclass
class ChunkResult(Generic[T, R]):
    """Outcome of a chunked run.

    Attributes:
        successes: ``(item, result)`` pairs in input order.
        failures: ``(item, error)`` pairs in input order.
        chunks_processed: Number of chunks attempted.
    """

    successes: list[tuple[T, R]] = field(default_factory=list)
    failures: list[tuple[T, Exception]] = field(default_factory=list)
    chunks_processed: int = 0

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


def split_into_chunks(items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
    return [list(items[i : i + chunk_size]) for i in range(0, len(items), chunk_size)]


def _credit_chunk(
    chunk: list[T],
    result: Any,
    entity_type: str,
    chunk_number: int,
) -> list[tuple[T, Any]]:
    """Map one chunk's result back onto its items.

    A list result is zipped positionally. A list shorter than the chunk
    credits the whole list to the items it does not cover, so no item is lost.
    Any other result is credited to every item.
    """
    if not isinstance(result, list) or not result:
        return [(item, result) for item in chunk]

    if len(result) < len(chunk):
        logger.warning(
            "Chunk returned fewer results than items",
            extra={
                "entity_type": entity_type,
                "chunk": chunk_number,
                "items": len(chunk),
                "results": len(result),
            },
        )

    credited: list[tuple[T, Any]] = []
    for idx, item in enumerate(chunk):
        credited.append((item, result[idx] if idx < len(result) else result))
    return credited


async def process_in_chunks(
    items: Sequence[T],
    fn: Callable[[list[T]], Awaitable[R]],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS,
    entity_type: str = "items",
) -> ChunkResult[T, Any]:
    """Run ``fn`` over ``items`` in sequential chunks.

    Args:
        items: Items to process, in order.
        fn: Async function processing one chunk.
        chunk_size: Maximum items per chunk.
        delay_seconds: Pause between chunks (never after the last one).
        entity_type: Label used in log records.

    Returns:
        ChunkResult with per-item successes and failures.

    Raises:
        ValueError: If ``chunk_size < 1`` or ``delay_seconds < 0``.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
    if delay_seconds < 0:
        raise ValueError(f"delay_seconds must not be negative, got {delay_seconds}")

    result: ChunkResult[T, Any] = ChunkResult()
    if not items:
        logger.debug("No items to process in chunks", extra={"entity_type": entity_type})
        return result

    chunks = split_into_chunks(items, chunk_size)
    total_chunks = len(chunks)

    logger.info(
        f"Processing {len(items)} {entity_type} in {total_chunks} chunks",
        extra={
            "chunk_size": chunk_size,
            "delay_seconds": delay_seconds,
            "total_items": len(items),
        },
    )

    for index, chunk in enumerate(chunks):
        chunk_number = index + 1
        try:
            outcome = await fn(chunk)
            result.successes.extend(_credit_chunk(chunk, outcome, entity_type, chunk_number))
            logger.debug(
                f"Completed chunk {chunk_number}/{total_chunks}",
                extra={"success_count": len(chunk)},
            )
        except Exception as e:
            logger.error(
                f"Failed to process chunk {chunk_number}/{total_chunks}",
                extra={"error": str(e), "items_in_chunk": len(chunk)},
            )
            result.failures.extend((item, e) for item in chunk)

        result.chunks_processed = chunk_number

        if chunk_number < total_chunks and delay_seconds > 0:
            logger.debug(
                f"Waiting {math.ceil(delay_seconds * 1000)}ms before next chunk",
                extra={"next_chunk": chunk_number + 1},
            )
            await asyncio.sleep(delay_seconds)

    if result.failures:
        logger.warning(
            f"Chunked processing completed with {len(result.failures)} failures",
            extra={
                "success_count": len(result.successes),
                "failure_count": len(result.failures),
                "chunks_processed": result.chunks_processed,
            },
        )
    else:
        logger.info(
            "Chunked processing completed successfully",
            extra={
                "items_processed": len(result.successes),
                "chunks_processed": result.chunks_processed,
            },
        )

    return result
