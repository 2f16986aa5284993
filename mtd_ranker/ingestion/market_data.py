"""
Daily price bars from Yahoo Finance via ``yfinance``.

``get_bars`` is a generator: nothing is downloaded until the first bar is
requested, and any provider error surfaces while the caller iterates. Closes
are converted through ``str`` into ``Decimal`` so the float noise of the
DataFrame does not leak into the return arithmetic.

The window passed in is inclusive at both ends; ``yfinance`` treats ``end``
as exclusive, so one day is added before the request.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

import pandas as pd
import yfinance as yf

from mtd_ranker.models.instrument import PriceBar

logger = logging.getLogger(__name__)


class MarketDataProvider(ABC):
    """Supplies daily bars for one symbol over an inclusive date range."""

    @abstractmethod
    def get_bars(self, symbol: str, start: date, end: date) -> Iterator[PriceBar]:
        """Yield bars in chronological order. Raises on provider error."""


class YahooMarketDataProvider(MarketDataProvider):
    """``yf.Ticker(symbol).history(...)`` wrapped as a lazy bar iterator.

    Args:
        interval:     Bar interval passed to ``yfinance``.
        auto_adjust:  Whether closes are split/dividend adjusted.
    """

    def __init__(self, interval: str = "1d", auto_adjust: bool = False) -> None:
        self.interval = interval
        self.auto_adjust = auto_adjust

    def get_bars(self, symbol: str, start: date, end: date) -> Iterator[PriceBar]:
        logger.debug("Fetching data for %s from %s to %s", symbol, start, end)
        history = yf.Ticker(symbol).history(
            start=start.isoformat(),
            end=(end + timedelta(days=1)).isoformat(),
            interval=self.interval,
            auto_adjust=self.auto_adjust,
            raise_errors=True,
        )
        if history is None or history.empty or "Close" not in history.columns:
            logger.debug("No bars returned for %s", symbol)
            return

        count = 0
        for timestamp, close in history["Close"].items():
            if pd.isna(close):
                continue
            count += 1
            yield PriceBar(
                timestamp=pd.Timestamp(timestamp).to_pydatetime(),
                close=Decimal(str(close)),
            )
        logger.debug("%s: %d bar(s)", symbol, count)
