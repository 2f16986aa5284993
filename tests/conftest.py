"""
Shared pytest fixtures for the MTD ranker test suite.

Provides:
  - ``FakeTickerSource`` / ``FakeMarketData``: in-memory collaborators so no
    test touches the network. Exposed through the ``fake_source`` and
    ``fake_market_data`` factory fixtures.
  - ``app_config``: default ``AppConfig`` with CSV export switched off.
  - ``make_bars``: build a ``PriceBar`` list from close prices.
  - Sample instruments and result sets shared by several modules.
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterator, Optional, Union

import pytest

from mtd_ranker.config import AppConfig, OutputConfig
from mtd_ranker.errors import TickerSourceError
from mtd_ranker.ingestion.market_data import MarketDataProvider
from mtd_ranker.ingestion.ticker_source import TickerSource
from mtd_ranker.models.instrument import Instrument, PriceBar
from mtd_ranker.models.results import ReturnRecord
from mtd_ranker.pipeline.aggregate import aggregate
from mtd_ranker.pipeline.refresh import RefreshController

BarsSpec = Union[list, Exception]


def _bars_from_closes(closes: list) -> list[PriceBar]:
    start = datetime(2024, 2, 1, tzinfo=timezone.utc)
    return [
        PriceBar(timestamp=start + timedelta(days=i), close=Decimal(str(c)))
        for i, c in enumerate(closes)
    ]


# ── Fake collaborators ────────────────────────────────────────────────────────

class FakeTickerSource(TickerSource):
    """Returns a fixed instrument list, or raises the given error."""

    def __init__(self, instruments: Optional[list[Instrument]] = None, error: Optional[Exception] = None):
        self.instruments = instruments or []
        self.error = error
        self.calls = 0

    def fetch(self) -> list[Instrument]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.instruments)


class FakeMarketData(MarketDataProvider):
    """Serves closes per symbol from a dict.

    A value that is an exception is raised while iterating, the way a
    provider error surfaces from a lazy series. Unknown symbols yield nothing.

    Args:
        series:  symbol -> list of closes, or an exception instance.
        gate:    If given, every ``get_bars`` blocks until it is set.
        started: Set as soon as the first ``get_bars`` call begins.
    """

    def __init__(
        self,
        series: dict[str, BarsSpec],
        gate: Optional[threading.Event] = None,
        started: Optional[threading.Event] = None,
    ):
        self.series = series
        self.gate = gate
        self.started = started
        self.requests: list[tuple[str, date, date]] = []
        self._lock = threading.Lock()

    def get_bars(self, symbol: str, start: date, end: date) -> Iterator[PriceBar]:
        with self._lock:
            self.requests.append((symbol, start, end))
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        entry = self.series.get(symbol, [])
        if isinstance(entry, Exception):
            raise entry
        yield from _bars_from_closes(entry)


# ── Factories ─────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_source() -> Callable[..., FakeTickerSource]:
    """Factory: ``fake_source([("AAPL", "Tech"), ...])`` or ``fake_source(error=exc)``."""

    def _make(pairs: Optional[list[tuple[str, Optional[str]]]] = None, error: Optional[Exception] = None):
        instruments = [Instrument(symbol=s, group=g) for s, g in (pairs or [])]
        return FakeTickerSource(instruments, error=error)

    return _make


@pytest.fixture
def fake_market_data() -> Callable[..., FakeMarketData]:
    """Factory: ``fake_market_data({"AAPL": [100, 110]}, gate=..., started=...)``."""
    return FakeMarketData


@pytest.fixture
def make_bars() -> Callable[[list], list[PriceBar]]:
    return _bars_from_closes


@pytest.fixture
def app_config() -> AppConfig:
    """Default config with CSV export off and a small worker pool."""
    return AppConfig(output=OutputConfig(write_csv=False))


@pytest.fixture
def make_controller(app_config, fake_source, fake_market_data):
    """Factory building a ``RefreshController`` over fake collaborators."""

    def _make(pairs=None, series=None, config: Optional[AppConfig] = None, source=None, market=None, **kwargs):
        return RefreshController(
            config=config or app_config,
            ticker_source=source or fake_source(pairs),
            market_data=market or fake_market_data(series or {}),
            **kwargs,
        )

    return _make


# ── Sample data ───────────────────────────────────────────────────────────────

SCENARIO_PAIRS = [("AAPL", "Tech"), ("XOM", "Energy"), ("CVX", "Energy")]
SCENARIO_SERIES = {"AAPL": [100, 110], "XOM": [50, 45], "CVX": []}


@pytest.fixture
def scenario_pairs() -> list[tuple[str, str]]:
    """AAPL/XOM/CVX instruments; CVX has no bars."""
    return list(SCENARIO_PAIRS)


@pytest.fixture
def scenario_series() -> dict[str, list]:
    return dict(SCENARIO_SERIES)


def make_record(symbol: str, group: str, value: float) -> ReturnRecord:
    first = Decimal("100")
    return ReturnRecord(
        symbol=symbol,
        group=group,
        return_value=value,
        bar_count=2,
        first_close=first,
        last_close=first * (1 + Decimal(repr(value))),
    )


@pytest.fixture
def record_factory() -> Callable[[str, str, float], ReturnRecord]:
    return make_record


@pytest.fixture
def sample_result_set():
    """Three tickers over two sectors, generated at a fixed time."""
    records = [
        make_record("AAPL", "Information Technology", 0.10),
        make_record("XOM", "Energy", -0.10),
        make_record("MSFT", "Information Technology", 0.05),
    ]
    return aggregate(records, generated_at=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def source_error() -> TickerSourceError:
    return TickerSourceError("Error visiting https://example.test: boom")
