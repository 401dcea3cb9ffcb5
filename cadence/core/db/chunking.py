"""
Chunked, strictly sequential execution of bulk statements.

Large row sets are split into bounded chunks so that a single multi-row
statement never carries more than `chunk_size` rows (SQLite also caps the
number of bound parameters per statement). Chunks run one after another:
chunk N+1 is not started before chunk N has returned.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def iter_chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield contiguous slices of at most `size` items, in order."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def chunked_apply(
    items: Sequence[T] | None,
    chunk_size: int,
    fn: Callable[[Sequence[T]], Awaitable[int]],
) -> int:
    """
    Apply `fn` to each chunk of `items` sequentially and sum the results.

    `fn` typically executes one multi-row statement and returns its rowcount.
    Empty or None input returns 0 without calling `fn`.
    """
    if not items:
        return 0
    total = 0
    for chunk in iter_chunks(items, chunk_size):
        total += await fn(chunk)
    return total
