"""Fan-out helper for independent per-customer and per-owner work."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Iterable[T], max_workers: int = 8) -> List[R]:
    """
    Apply ``func`` to every item in parallel and join, preserving input order.

    An exception raised by any call propagates after all submitted work has
    been scheduled; callers that need per-item isolation catch inside ``func``.
    """
    items = list(items)
    if not items:
        return []
    if max_workers <= 1 or len(items) == 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
        return list(pool.map(func, items))
