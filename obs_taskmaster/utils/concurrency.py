"""
Bounded per-item concurrency with a per-item time budget.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, Optional, Sequence, TypeVar

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class Outcome(Generic[T]):
    """Result of processing one item: a value, an error, or a timeout."""

    item: T
    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


def run_bounded(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int,
    timeout: float,
) -> Iterator[Outcome[T]]:
    """
    Run ``func`` over ``items`` in a thread pool, yielding outcomes in input order.

    Each item gets ``timeout`` seconds once its result is awaited. An item
    that overruns is reported as timed out and the batch moves on; exceptions
    raised by ``func`` are captured in the outcome, never re-raised.
    """
    if not items:
        return

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items))))
    try:
        futures = [executor.submit(func, item) for item in items]
        for item, future in zip(items, futures):
            try:
                yield Outcome(item=item, value=future.result(timeout=timeout))
            except FutureTimeout:
                future.cancel()
                yield Outcome(item=item, timed_out=True)
            except Exception as exc:
                yield Outcome(item=item, error=exc)
    finally:
        # Hung workers are abandoned rather than joined
        executor.shutdown(wait=False, cancel_futures=True)
