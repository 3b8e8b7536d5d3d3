"""
Rate-limited batch processing.

Items are split into consecutive batches of ``rate.count``. A batch is fully
processed before the next one starts, and when ``rate.interval`` is set the
next batch waits that long. No pause follows the final batch.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Sequence, TypeVar

from ..exceptions import ConfigurationError
from ..models.config import RateLimit

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ChunkWorker = Callable[[List[T]], AsyncIterator[R]]
Sleep = Callable[[float], Awaitable[None]]


def iter_chunks(items: Sequence[T], count: int) -> List[List[T]]:
    """Split ``items`` into consecutive lists of at most ``count`` items."""
    if count <= 0:
        raise ConfigurationError(f"Chunk size must be a positive integer, got {count}")
    return [list(items[index:index + count]) for index in range(0, len(items), count)]


async def by_chunk(
    items: Sequence[T],
    rate: RateLimit,
    method: ChunkWorker,
    sleep: Sleep = asyncio.sleep,
) -> AsyncIterator[R]:
    """
    Yield every result ``method`` produces, batch by batch.

    Args:
        items: Items to process, in order
        rate: Batch size and optional pause between batches
        method: Async generator function processing one batch
        sleep: Coroutine used for the pause between batches

    Raises:
        ConfigurationError: If ``rate.count`` is not positive
    """
    chunks = iter_chunks(items, rate.count)
    delay = rate.interval.total_seconds() if rate.interval else 0

    for index, chunk in enumerate(chunks):
        async for result in method(chunk):
            yield result

        if delay and index < len(chunks) - 1:
            logger.debug(f"Processed batch {index + 1}/{len(chunks)}, waiting {delay}s before the next one")
            await sleep(delay)


async def by_chunk_async(
    items: Sequence[T],
    rate: RateLimit,
    method: ChunkWorker,
    sleep: Sleep = asyncio.sleep,
) -> List[R]:
    """Collect the results of :func:`by_chunk` into a list."""
    return [result async for result in by_chunk(items, rate, method, sleep=sleep)]
