"""
Instrument-list source — S&P 500 constituents scraped from Wikipedia.

The page is fetched with ``httpx`` (Wikipedia answers 403 without a browser
User-Agent) and parsed with ``pandas.read_html``. The first table carrying a
``Symbol`` column is used; ``GICS Sector`` supplies the group.

Row rules:
  - Empty symbols, repeated ``Symbol`` header rows and symbols of
    ``MAX_SYMBOL_LENGTH`` characters or more are skipped silently.
  - Rows that fail ``Instrument`` validation for any other reason count as
    scrape errors. So does a failed HTTP request.
  - ``BRK.B`` is rewritten to ``BRK-B`` for Yahoo symbols when
    ``source.symbol_dot_to_dash`` is on.

Scrape errors are counted in a ``ScrapeContext`` created per ``fetch()``
call, so concurrent refreshes never share a counter.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
import pandas as pd
from pydantic import ValidationError

from mtd_ranker.config import SourceConfig
from mtd_ranker.errors import ScrapeErrorLimitError, TickerSourceError
from mtd_ranker.models.instrument import MAX_SYMBOL_LENGTH, Instrument

logger = logging.getLogger(__name__)

SYMBOL_COLUMN = "Symbol"
SECTOR_COLUMN = "GICS Sector"


class TickerSource(ABC):
    """Supplies the instruments one refresh works on."""

    @abstractmethod
    def fetch(self) -> list[Instrument]:
        """Return the instrument list.

        Raises:
            TickerSourceError: If the list cannot be obtained or is empty.
        """


class ScrapeContext:
    """Error counter scoped to a single scrape call.

    Args:
        max_errors: Abort with ``ScrapeErrorLimitError`` once this many
                    errors have been recorded.
    """

    def __init__(self, max_errors: int) -> None:
        self.max_errors  = max_errors
        self.error_count = 0

    def record(self, message: str) -> None:
        self.error_count += 1
        logger.warning("Scrape error %d/%d: %s", self.error_count, self.max_errors, message)
        if self.error_count >= self.max_errors:
            raise ScrapeErrorLimitError(self.error_count, self.max_errors)


class WikipediaTickerSource(TickerSource):
    """Scrapes the S&P 500 constituents table.

    Args:
        config: ``[source]`` section of ``AppConfig``.
    """

    def __init__(self, config: SourceConfig) -> None:
        self.config = config

    def fetch(self) -> list[Instrument]:
        ctx = ScrapeContext(self.config.max_errors)
        logger.info("Fetching S&P 500 tickers from %s ...", self.config.url)

        html = self._download(ctx)
        table = self._find_table(html)
        instruments = self.parse_table(table, ctx)

        if not instruments:
            raise TickerSourceError("No tickers found on the page.")
        logger.info("Found %d tickers (%d scrape error(s)).", len(instruments), ctx.error_count)
        return instruments

    def parse_table(self, table: pd.DataFrame, ctx: ScrapeContext) -> list[Instrument]:
        """Turn the constituents table into validated instruments."""
        symbols = table[SYMBOL_COLUMN].tolist()
        if SECTOR_COLUMN in table.columns:
            sectors = table[SECTOR_COLUMN].tolist()
        else:
            sectors = [None] * len(symbols)
        instruments: list[Instrument] = []

        for row_number, (raw_symbol, raw_sector) in enumerate(zip(symbols, sectors), start=1):
            symbol = _clean_cell(raw_symbol)
            if not symbol or symbol == SYMBOL_COLUMN or len(symbol) >= MAX_SYMBOL_LENGTH:
                logger.debug("Skipping row %d: symbol=%r", row_number, symbol)
                continue

            if self.config.symbol_dot_to_dash:
                symbol = symbol.replace(".", "-")

            try:
                instruments.append(Instrument(symbol=symbol, group=_clean_cell(raw_sector)))
            except ValidationError as exc:
                ctx.record(f"row {row_number} ({symbol!r}): {exc.errors()[0]['msg']}")

        return instruments

    # ── Private helpers ───────────────────────────────────────────────────────

    def _download(self, ctx: ScrapeContext) -> str:
        try:
            resp = httpx.get(
                self.config.url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout_seconds,
                follow_redirects=True,
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            ctx.record(f"{self.config.url} failed: {exc}")
            raise TickerSourceError(f"Error visiting {self.config.url}: {exc}") from exc
        return resp.text

    def _find_table(self, html: str) -> pd.DataFrame:
        try:
            tables = pd.read_html(io.StringIO(html))
        except ValueError as exc:
            raise TickerSourceError(f"No tables found on {self.config.url}.") from exc

        table: Optional[pd.DataFrame] = next(
            (t for t in tables if SYMBOL_COLUMN in t.columns), None
        )
        if table is None:
            raise TickerSourceError(
                f"No table with a '{SYMBOL_COLUMN}' column on {self.config.url}."
            )
        return table


def _clean_cell(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()
