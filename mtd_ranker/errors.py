"""
Exception hierarchy for the MTD ranker.

Three families, matching how a refresh treats them:

  - Source acquisition (``TickerSourceError``, ``ScrapeErrorLimitError``):
    fatal to a refresh, raised before any per-item work is dispatched.
  - Per-item (``NoDataError``, ``InvalidFirstCloseError``, ``InvalidReturnError``):
    recoverable, the instrument is dropped and the error collected.
  - Refresh control (``RefreshInProgressError``, ``RefreshCancelledError``,
    ``ItemErrorLimitError``): decide whether a refresh installs a snapshot.
"""

from __future__ import annotations


class MtdRankerError(RuntimeError):
    """Base class for all errors raised by ``mtd_ranker``."""


# ── Source acquisition ────────────────────────────────────────────────────────


class TickerSourceError(MtdRankerError):
    """Raised when the instrument list cannot be fetched or is empty."""


class ScrapeErrorLimitError(TickerSourceError):
    """Raised when one scrape call accumulates too many errors.

    Attributes:
        error_count: Errors recorded in the failing call.
        max_errors:  Configured ceiling.
    """

    def __init__(self, error_count: int, max_errors: int) -> None:
        self.error_count = error_count
        self.max_errors  = max_errors
        super().__init__(
            f"Reached maximum number of scrape errors ({error_count}/{max_errors})."
        )


# ── Per-item ──────────────────────────────────────────────────────────────────


class NoDataError(MtdRankerError):
    """Raised when a price series yields zero bars."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"No data found for {symbol}.")


class InvalidFirstCloseError(MtdRankerError):
    """Raised when the first close of a series is exactly zero."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"First close for {symbol} is zero; return is undefined.")


class InvalidReturnError(MtdRankerError):
    """Raised when a computed return cannot be represented as a finite float."""

    def __init__(self, symbol: str, value: object) -> None:
        self.symbol = symbol
        self.value  = value
        super().__init__(f"Invalid return value for {symbol}: {value!r}.")


# ── Refresh control ───────────────────────────────────────────────────────────


class RefreshInProgressError(MtdRankerError):
    """Raised when a refresh is requested while another one is running."""

    def __init__(self) -> None:
        super().__init__("A refresh is already in progress.")


class RefreshCancelledError(MtdRankerError):
    """Raised (or recorded) when a refresh hits its deadline or is cancelled.

    Attributes:
        completed: Items that finished before cancellation.
        total:     Items dispatched.
    """

    def __init__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total     = total
        super().__init__(
            f"Refresh cancelled after {completed}/{total} item(s) completed."
        )


class ItemErrorLimitError(MtdRankerError):
    """Raised when per-item failures exceed ``pipeline.max_item_errors``."""

    def __init__(self, error_count: int, max_errors: int) -> None:
        self.error_count = error_count
        self.max_errors  = max_errors
        super().__init__(
            f"{error_count} instrument(s) failed, above the ceiling of {max_errors}; "
            "treating the market-data source as broken."
        )
