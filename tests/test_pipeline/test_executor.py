"""
Tests for the bounded parallel executor.

What we test
------------
1. Results are keyed by input index; duplicate items never overwrite each other.
2. Worker count clamping.
3. Errors are captured per item and never raised.
4. Deadline expiry returns completed work with ``cancelled=True``.
5. An external cancel event stops dispatch of queued items.
6. Empty input.
"""

from __future__ import annotations

import threading
import time

import pytest

from mtd_ranker.pipeline.executor import ItemFailure, effective_workers, run_parallel


# ── Result keying ─────────────────────────────────────────────────────────────

class TestResultKeying:
    def test_every_item_processed_once(self):
        calls: list[int] = []
        lock = threading.Lock()

        def work(x: int) -> int:
            with lock:
                calls.append(x)
            return x * 2

        outcome = run_parallel(list(range(50)), work, max_workers=8)

        assert sorted(calls) == list(range(50))
        assert outcome.ordered_results() == [x * 2 for x in range(50)]
        assert outcome.completed == 50
        assert outcome.unfinished == 0
        assert not outcome.cancelled

    def test_duplicate_items_kept_separately(self):
        items = ["AAPL", "AAPL", "MSFT", "AAPL"]
        outcome = run_parallel(items, lambda s: s.lower(), max_workers=4)

        assert outcome.results == {0: "aapl", 1: "aapl", 2: "msft", 3: "aapl"}

    def test_results_ordered_regardless_of_completion_order(self):
        def work(x: int) -> int:
            time.sleep(0.02 * (5 - x))
            return x

        outcome = run_parallel(list(range(5)), work, max_workers=5)
        assert outcome.ordered_results() == [0, 1, 2, 3, 4]


# ── Worker clamping ───────────────────────────────────────────────────────────

class TestEffectiveWorkers:
    @pytest.mark.parametrize(
        "max_workers, n_items, cpus, expected",
        [
            (10, 500, 4, 8),     # cpu * 2 wins
            (10, 500, 16, 10),   # configured max wins
            (10, 3, 16, 3),      # item count wins
            (0, 5, 4, 1),        # never below one
        ],
    )
    def test_clamping(self, max_workers, n_items, cpus, expected):
        assert effective_workers(max_workers, n_items, cpu_count=cpus) == expected

    def test_outcome_reports_workers(self):
        outcome = run_parallel([1, 2], lambda x: x, max_workers=10)
        assert 1 <= outcome.workers <= 2


# ── Error capture ─────────────────────────────────────────────────────────────

class TestErrorCapture:
    def test_failures_recorded_not_raised(self):
        def work(x: int) -> int:
            if x % 2:
                raise ValueError(f"odd {x}")
            return x

        outcome = run_parallel([0, 1, 2, 3], work, max_workers=2)

        assert outcome.ordered_results() == [0, 2]
        failed = sorted(outcome.failures, key=lambda f: f.index)
        assert [f.index for f in failed] == [1, 3]
        assert all(isinstance(f, ItemFailure) for f in failed)
        assert isinstance(failed[0].error, ValueError)
        assert failed[0].item == 1
        assert outcome.completed == 4


# ── Deadline and cancellation ─────────────────────────────────────────────────

class TestCancellation:
    def test_deadline_returns_partial_outcome(self):
        release = threading.Event()

        def work(x: int) -> int:
            if x == 0:
                return x
            release.wait(timeout=2)
            return x

        try:
            started = time.monotonic()
            outcome = run_parallel([0, 1, 2, 3], work, max_workers=2, deadline=0.3)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        assert outcome.cancelled
        assert 0 in outcome.results
        assert outcome.unfinished > 0
        assert elapsed < 1.5

    def test_cancel_event_skips_queued_items(self):
        cancel = threading.Event()
        ran: list[int] = []
        lock = threading.Lock()

        def work(x: int) -> int:
            with lock:
                ran.append(x)
            if x == 0:
                cancel.set()
                time.sleep(0.1)
            return x

        outcome = run_parallel(list(range(20)), work, max_workers=1, cancel_event=cancel)

        assert outcome.cancelled
        assert len(ran) < 20
        assert outcome.failures == []

    def test_deadline_not_hit_when_work_is_fast(self):
        outcome = run_parallel(list(range(10)), lambda x: x, max_workers=4, deadline=5.0)
        assert not outcome.cancelled
        assert len(outcome.results) == 10

    def test_caller_event_not_set_on_deadline(self):
        cancel = threading.Event()
        release = threading.Event()
        try:
            run_parallel([1], lambda x: release.wait(timeout=2), max_workers=1,
                         deadline=0.1, cancel_event=cancel)
        finally:
            release.set()
        assert not cancel.is_set()


# ── Edge cases ────────────────────────────────────────────────────────────────

def test_empty_input_returns_empty_outcome():
    outcome = run_parallel([], lambda x: x, max_workers=4)
    assert outcome.total == 0
    assert outcome.results == {}
    assert outcome.failures == []
    assert not outcome.cancelled
