"""
Result cache and refresh controller.

The ``RefreshController`` runs one refresh end to end in a fixed sequence:

  Step 1 — Source:    Fetch the instrument list (fatal on failure).
  Step 2 — Dispatch:  Fetch bars and compute a return per instrument on the
                      bounded executor (failures isolated per instrument).
  Step 3 — Policy:    Apply the item-error ceiling and the deadline policy.
  Step 4 — Aggregate: Rank instruments and sectors into a ``ResultSet``.
  Step 5 — Install:   Swap the snapshot into the ``ResultCache``.
  Step 6 — Export:    Write the CSV side artifact (failure is only a warning).

Failure isolation
-----------------
- Ticker source failure:     Refresh fails before dispatch; cache untouched.
- Per-instrument failure:    Logged, recorded in ``item_errors``, item dropped.
- Too many item failures:    Refresh fails when ``pipeline.max_item_errors``
                             is set and exceeded; cache untouched.
- Deadline / cancellation:   Partial if anything completed, failed otherwise.
- CSV write failure:         Warning only; the snapshot is already installed.

Concurrent refreshes
--------------------
With ``refresh.single_flight`` on (the default) a refresh that starts while
another is running returns ``failed`` with ``RefreshInProgressError``
immediately. With it off, overlapping refreshes both run and the last one to
finish wins the install; installation itself is always atomic.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from mtd_ranker.config import AppConfig
from mtd_ranker.errors import (
    ItemErrorLimitError,
    RefreshCancelledError,
    RefreshInProgressError,
)
from mtd_ranker.ingestion.market_data import MarketDataProvider
from mtd_ranker.ingestion.ticker_source import TickerSource
from mtd_ranker.models.instrument import Instrument
from mtd_ranker.models.results import ResultSet, ReturnRecord
from mtd_ranker.pipeline.aggregate import aggregate
from mtd_ranker.pipeline.executor import run_parallel
from mtd_ranker.pipeline.returns import compute_return
from mtd_ranker.utils.time_utils import DateWindow, previous_month_window, utcnow

logger = logging.getLogger(__name__)


# ── Result cache ──────────────────────────────────────────────────────────────


class ResultCache:
    """Holds the most recently installed ``ResultSet``.

    The snapshot is immutable, so the lock only guards the reference: a reader
    holds it for one attribute read and a writer for one assignment. Readers
    never see a half-built snapshot because snapshots are only ever installed
    complete.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[ResultSet] = None

    def get_snapshot(self) -> Optional[ResultSet]:
        """Return the installed snapshot, or ``None`` if never populated."""
        with self._lock:
            return self._snapshot

    def install(self, result_set: ResultSet) -> None:
        with self._lock:
            self._snapshot = result_set

    @property
    def populated(self) -> bool:
        return self.get_snapshot() is not None


# ── Result type ───────────────────────────────────────────────────────────────


@dataclass
class RefreshResult:
    """Outcome of one ``RefreshController.refresh`` call.

    Attributes:
        status:       "success", "partial", or "failed".
        window:       Date window the refresh covered.
        started_at:   UTC datetime when the refresh started.
        finished_at:  UTC datetime when the refresh finished.
        instruments:  Instruments returned by the ticker source.
        succeeded:    Instruments that produced a valid return.
        item_errors:  ``"SYMBOL: message"`` for every dropped instrument.
        cancelled:    True if the deadline or a cancel signal cut dispatch short.
        installed:    True if a new snapshot was installed.
        csv_path:     Path of the CSV written, if any.
        error:        Fatal error message when ``status == "failed"``.
    """

    status:      str                     = "started"
    window:      Optional[DateWindow]    = None
    started_at:  Optional[datetime]      = None
    finished_at: Optional[datetime]      = None
    instruments: int                     = 0
    succeeded:   int                     = 0
    item_errors: list[str]               = field(default_factory=list)
    cancelled:   bool                    = False
    installed:   bool                    = False
    csv_path:    Optional[str]           = None
    error:       Optional[str]           = None

    @property
    def success(self) -> bool:
        return self.status in ("success", "partial")


# ── Controller ────────────────────────────────────────────────────────────────


class RefreshController:
    """Runs the fetch/compute/aggregate pipeline and installs its snapshot.

    ``cancel()`` is sticky: once called, the running refresh and every later
    one are cut short until ``reset()`` clears the signal. Shutdown paths call
    ``cancel()`` and never reset.

    Args:
        config:        AppConfig for every refresh.
        ticker_source: Supplies the instrument list.
        market_data:   Supplies daily bars per symbol.
        cache:         Snapshot holder; a fresh one is created if omitted.
        csv_writer:    ``(result_set, path) -> None``; defaults to
                       ``reporting.export.write_results_csv``.
    """

    def __init__(
        self,
        config: AppConfig,
        ticker_source: TickerSource,
        market_data: MarketDataProvider,
        cache: Optional[ResultCache] = None,
        csv_writer: Optional[Callable[[ResultSet, Path], None]] = None,
    ) -> None:
        self.config        = config
        self.ticker_source = ticker_source
        self.market_data   = market_data
        self.cache         = cache or ResultCache()
        self._csv_writer   = csv_writer
        self._flight_lock  = threading.Lock()
        self._cancel_event = threading.Event()

    def get_snapshot(self) -> Optional[ResultSet]:
        return self.cache.get_snapshot()

    def cancel(self) -> None:
        """Cut short any running refresh and every later one (used on shutdown)."""
        self._cancel_event.set()

    def reset(self) -> None:
        """Clear a previous ``cancel()`` so later refreshes run again."""
        self._cancel_event.clear()

    def refresh(
        self,
        window: Optional[DateWindow] = None,
        write_csv: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RefreshResult:
        """Run one refresh and install its snapshot on success or partial.

        Args:
            window:       Return window; defaults to the previous calendar month.
            write_csv:    Override ``output.write_csv`` for this call.
            cancel_event: Extra cancel signal; the controller's own signal
                          (``cancel()``) is used when omitted.

        Returns:
            RefreshResult. Never raises for pipeline failures; they are
            reported through ``status`` and ``error``.
        """
        window = window or previous_month_window()

        if not self.config.refresh.single_flight:
            return self._run(window, write_csv, cancel_event)

        if not self._flight_lock.acquire(blocking=False):
            exc = RefreshInProgressError()
            logger.warning("Refresh rejected | window=%s..%s | %s", window.start, window.end, exc)
            now = utcnow()
            return RefreshResult(
                status="failed", window=window, started_at=now, finished_at=now, error=str(exc)
            )
        try:
            return self._run(window, write_csv, cancel_event)
        finally:
            self._flight_lock.release()

    # ── Private helpers ───────────────────────────────────────────────────────

    def _run(
        self,
        window: DateWindow,
        write_csv: Optional[bool],
        cancel_event: Optional[threading.Event],
    ) -> RefreshResult:
        result = RefreshResult(window=window, started_at=utcnow())
        logger.info("Refresh starting | window=%s..%s", window.start, window.end)

        # ── Step 1: Source ────────────────────────────────────────────────────
        try:
            instruments = self.ticker_source.fetch()
        except Exception as exc:
            return self._fail(result, f"Ticker source failed: {exc}")
        if not instruments:
            return self._fail(result, "Ticker source returned no instruments.")
        result.instruments = len(instruments)
        logger.info("[1/4] %d instrument(s) from ticker source.", len(instruments))

        # ── Step 2: Dispatch ──────────────────────────────────────────────────
        ec = self.config.executor
        logger.info("[2/4] Fetching bars | max_workers=%d ...", ec.max_workers)

        def _work(instrument: Instrument) -> ReturnRecord:
            bars = self.market_data.get_bars(instrument.symbol, window.start, window.end)
            return compute_return(instrument, bars)

        outcome = run_parallel(
            instruments,
            _work,
            max_workers=ec.max_workers,
            deadline=ec.deadline_seconds,
            cancel_event=cancel_event or self._cancel_event,
        )
        for failure in sorted(outcome.failures, key=lambda f: f.index):
            logger.warning("Skipping %s: %s", failure.item.symbol, failure.error)
            result.item_errors.append(f"{failure.item.symbol}: {failure.error}")
        records = outcome.ordered_results()
        result.succeeded = len(records)
        result.cancelled = outcome.cancelled

        # ── Step 3: Policy ────────────────────────────────────────────────────
        ceiling = self.config.pipeline.max_item_errors
        if ceiling is not None and len(outcome.failures) > ceiling:
            return self._fail(result, str(ItemErrorLimitError(len(outcome.failures), ceiling)))

        if outcome.cancelled:
            cancelled = RefreshCancelledError(outcome.completed, outcome.total)
            if not records:
                return self._fail(result, str(cancelled))
            logger.warning("%s Continuing with partial results.", cancelled)

        if not records and self.config.pipeline.require_success:
            return self._fail(
                result, f"No instrument produced a return ({len(outcome.failures)} failed)."
            )

        # ── Step 4: Aggregate ─────────────────────────────────────────────────
        logger.info("[3/4] Aggregating %d record(s) ...", len(records))
        result_set = aggregate(records, generated_at=utcnow(), window=window)

        # ── Step 5: Install ───────────────────────────────────────────────────
        self.cache.install(result_set)
        result.installed = True

        # ── Step 6: Export ────────────────────────────────────────────────────
        should_write = self.config.output.write_csv if write_csv is None else write_csv
        if should_write:
            logger.info("[4/4] Writing CSV ...")
            result.csv_path = self._write_csv(result_set)
        else:
            logger.info("[4/4] CSV export skipped.")

        result.status = "partial" if (result.item_errors or result.cancelled) else "success"
        result.finished_at = utcnow()
        logger.info(
            "Refresh finished | status=%s | ok=%d/%d | errors=%d | categories=%d",
            result.status, result.succeeded, result.instruments,
            len(result.item_errors), len(result_set.categories),
        )
        return result

    def _fail(self, result: RefreshResult, message: str) -> RefreshResult:
        result.status = "failed"
        result.error = message
        result.finished_at = utcnow()
        logger.error("Refresh failed: %s", message)
        return result

    def _write_csv(self, result_set: ResultSet) -> Optional[str]:
        path = Path(self.config.output.csv_path)
        writer = self._csv_writer
        if writer is None:
            from mtd_ranker.reporting.export import write_results_csv
            writer = write_results_csv
        try:
            writer(result_set, path)
        except OSError as exc:
            logger.warning("Failed to write CSV to %s: %s", path, exc)
            return None
        logger.info("Results written to %s", path)
        return str(path)
