"""
Bounded parallel executor.

``run_parallel(items, work, max_workers)`` maps every input item through
``work`` on a thread pool and returns an outcome keyed by the item's input
position:

  - Each item is submitted exactly once, tagged with its index. Results are
    stored under that index, so duplicate or equal items can never overwrite
    one another.
  - Worker count is clamped to ``[1, min(max_workers, cpu_count * 2, len(items))]``.
  - A ``deadline`` (seconds for the whole call) or a ``cancel_event`` stops
    the run early: queued items are cancelled, running items are abandoned,
    and whatever completed is returned with ``cancelled=True``.

The executor knows nothing about returns or sectors and does not log
per-item failures; callers decide what a failure means.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

# How often the wait loop wakes to check ``cancel_event``.
_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class ItemFailure(Generic[T]):
    """A ``work`` call that raised.

    Attributes:
        index: Position of the item in the input sequence.
        item:  The input item itself.
        error: The exception ``work`` raised.
    """

    index: int
    item:  T
    error: BaseException


@dataclass
class ParallelOutcome(Generic[T, R]):
    """Everything one ``run_parallel`` call produced.

    Attributes:
        results:   Successful results keyed by input index.
        failures:  Failed items, in completion order.
        total:     Number of items submitted.
        workers:   Effective worker count after clamping.
        cancelled: True if the deadline elapsed or ``cancel_event`` fired
                   before every item finished.
    """

    results:   dict[int, R]           = field(default_factory=dict)
    failures:  list[ItemFailure[T]]   = field(default_factory=list)
    total:     int                    = 0
    workers:   int                    = 0
    cancelled: bool                   = False

    @property
    def completed(self) -> int:
        return len(self.results) + len(self.failures)

    @property
    def unfinished(self) -> int:
        return self.total - self.completed

    def ordered_results(self) -> list[R]:
        """Successful results in input order."""
        return [self.results[i] for i in sorted(self.results)]


def effective_workers(max_workers: int, n_items: int, cpu_count: Optional[int] = None) -> int:
    """Clamp the requested worker count to ``[1, min(max, cpus * 2, n_items)]``."""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    return max(1, min(max_workers, cpus * 2, n_items))


def run_parallel(
    items: Sequence[T],
    work: Callable[[T], R],
    max_workers: int,
    deadline: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ParallelOutcome[T, R]:
    """Run ``work`` over ``items`` on a bounded thread pool.

    Args:
        items:        Input items. Order defines the result keys.
        work:         Callable applied to each item. Exceptions are captured
                      as ``ItemFailure`` records, never raised.
        max_workers:  Configured worker ceiling.
        deadline:     Optional wall-clock budget in seconds for the whole call.
        cancel_event: Optional external cancellation signal.

    Returns:
        ``ParallelOutcome`` with results keyed by input index.
    """
    outcome: ParallelOutcome[T, R] = ParallelOutcome(total=len(items))
    if not items:
        return outcome

    stop = threading.Event()
    workers = effective_workers(max_workers, len(items))
    outcome.workers = workers

    def _guarded(item: T) -> R:
        # Items still queued when a stop is requested are skipped, not run.
        if stop.is_set() or _is_set(cancel_event):
            raise _Skipped()
        return work(item)

    expires_at = time.monotonic() + deadline if deadline is not None else None
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mtd-worker")
    try:
        pending: dict[Future, int] = {
            pool.submit(_guarded, item): index for index, item in enumerate(items)
        }

        while pending:
            timeout = _POLL_SECONDS
            if expires_at is not None:
                remaining = expires_at - time.monotonic()
                if remaining <= 0:
                    outcome.cancelled = True
                    break
                timeout = min(timeout, remaining)
            if _is_set(cancel_event):
                outcome.cancelled = True
                break

            done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                _record(outcome, future, index, items[index])

        if outcome.cancelled:
            # Harvest anything that finished in the meantime; the rest is abandoned.
            for future, index in list(pending.items()):
                if future.done() and not future.cancelled():
                    _record(outcome, future, index, items[index])
    finally:
        if outcome.cancelled:
            stop.set()
        pool.shutdown(wait=not outcome.cancelled, cancel_futures=outcome.cancelled)

    return outcome


def _is_set(event: Optional[threading.Event]) -> bool:
    return event is not None and event.is_set()


class _Skipped(Exception):
    """Marker for items skipped after a stop request."""


def _record(outcome: ParallelOutcome, future: Future, index: int, item) -> None:
    error = future.exception()
    if error is None:
        outcome.results[index] = future.result()
    elif not isinstance(error, _Skipped):
        outcome.failures.append(ItemFailure(index=index, item=item, error=error))
