from __future__ import annotations

from typing import Iterable, Iterator, List, TypeVar

T = TypeVar("T")


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most ``size`` items, keeping input order.

    The last batch may be shorter and is always emitted.
    """
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    buffer: List[T] = []
    for item in items:
        buffer.append(item)
        if len(buffer) >= size:
            yield buffer
            buffer = []
    if buffer:
        yield buffer
