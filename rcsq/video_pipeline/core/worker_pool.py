import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

T = TypeVar("T")

ProgressCallback = Callable[[int, int], Awaitable[None]]


async def run_indexed_pool(
    count: int,
    handler: Callable[[int], Awaitable[T]],
    concurrency: int,
    on_progress: Optional[ProgressCallback] = None,
) -> List[T]:
    """
    Run ``handler(index)`` for every index in ``range(count)`` on a fixed pool.

    Workers claim the next unclaimed index from a shared counter and write
    their result back at that index, so the returned list follows input order
    whatever the completion order. The first handler failure cancels the
    remaining workers and propagates.
    """
    if count <= 0:
        return []
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    results: List[Optional[T]] = [None] * count
    next_index = 0
    completed = 0

    async def worker():
        nonlocal next_index, completed
        while next_index < count:
            # Claim and advance without an await in between
            index = next_index
            next_index += 1
            results[index] = await handler(index)
            completed += 1
            if on_progress is not None:
                await on_progress(completed, count)

    workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, count))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise
    return results
