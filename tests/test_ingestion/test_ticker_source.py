"""
Tests for the Wikipedia ticker source.

httpx is patched; the HTML goes through the real ``pandas.read_html`` parser.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from mtd_ranker.config import SourceConfig
from mtd_ranker.errors import ScrapeErrorLimitError, TickerSourceError
from mtd_ranker.ingestion import ticker_source
from mtd_ranker.ingestion.ticker_source import ScrapeContext, WikipediaTickerSource


def _page(rows: list[tuple[str, str]], symbol_header: str = "Symbol") -> str:
    body = "\n".join(
        f"<tr><td>{symbol}</td><td>Co {i}</td><td>{sector}</td></tr>"
        for i, (symbol, sector) in enumerate(rows)
    )
    return (
        "<html><body><table class='wikitable'>"
        f"<thead><tr><th>{symbol_header}</th><th>Security</th><th>GICS Sector</th></tr></thead>"
        f"<tbody>{body}</tbody></table></body></html>"
    )


def _response(html: str) -> MagicMock:
    resp = MagicMock()
    resp.text = html
    resp.raise_for_status.return_value = None
    return resp


def _fetch(html: str, **config) -> list:
    source = WikipediaTickerSource(SourceConfig(**config))
    with patch.object(ticker_source.httpx, "get", return_value=_response(html)) as get:
        instruments = source.fetch()
    get.assert_called_once()
    return instruments


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestParsing:
    def test_symbols_and_sectors(self):
        instruments = _fetch(_page([("MMM", "Industrials"), ("AAPL", "Information Technology")]))
        assert [(i.symbol, i.group) for i in instruments] == [
            ("MMM", "Industrials"),
            ("AAPL", "Information Technology"),
        ]

    def test_dot_symbols_rewritten_for_yahoo(self):
        instruments = _fetch(_page([("BRK.B", "Financials")]))
        assert instruments[0].symbol == "BRK-B"

    def test_dot_rewrite_can_be_disabled(self):
        instruments = _fetch(_page([("BRK.B", "Financials")]), symbol_dot_to_dash=False)
        assert instruments[0].symbol == "BRK.B"

    def test_skip_rules(self):
        rows = [
            ("MMM", "Industrials"),
            ("", "Energy"),
            ("Symbol", "GICS Sector"),
            ("WAYTOOLONGX", "Energy"),
            ("XOM", "Energy"),
        ]
        instruments = _fetch(_page(rows))
        assert [i.symbol for i in instruments] == ["MMM", "XOM"]

    def test_blank_sector_is_unknown(self):
        instruments = _fetch(_page([("AAPL", "")]))
        assert instruments[0].group == "Unknown"

    def test_user_agent_sent(self):
        source = WikipediaTickerSource(SourceConfig(user_agent="test-agent"))
        with patch.object(ticker_source.httpx, "get",
                          return_value=_response(_page([("MMM", "Industrials")]))) as get:
            source.fetch()
        assert get.call_args.kwargs["headers"] == {"User-Agent": "test-agent"}


# ── Failures ──────────────────────────────────────────────────────────────────

class TestFailures:
    def test_http_error_is_source_error(self):
        source = WikipediaTickerSource(SourceConfig())
        with patch.object(ticker_source.httpx, "get", side_effect=httpx.ConnectError("down")):
            with pytest.raises(TickerSourceError, match="Error visiting"):
                source.fetch()

    def test_no_symbol_table(self):
        with pytest.raises(TickerSourceError, match="'Symbol' column"):
            _fetch(_page([("MMM", "Industrials")], symbol_header="Ticker"))

    def test_no_tables_at_all(self):
        with pytest.raises(TickerSourceError, match="No tables"):
            _fetch("<html><body><p>nothing here</p></body></html>")

    def test_everything_skipped_is_source_error(self):
        with pytest.raises(TickerSourceError, match="No tickers"):
            _fetch(_page([("", "Energy"), ("Symbol", "GICS Sector")]))

    def test_bad_rows_counted_and_kept_going(self):
        instruments = _fetch(_page([("AB C", "Energy"), ("XOM", "Energy")]), max_errors=5)
        assert [i.symbol for i in instruments] == ["XOM"]

    def test_error_limit_aborts(self):
        with pytest.raises(ScrapeErrorLimitError) as exc_info:
            _fetch(_page([("AB C", "Energy"), ("XOM", "Energy")]), max_errors=1)
        assert exc_info.value.error_count == 1

    def test_error_count_is_per_call(self):
        """Two fetches with one bad row each never reach a limit of two."""
        html = _page([("AB C", "Energy"), ("XOM", "Energy")])
        assert len(_fetch(html, max_errors=2)) == 1
        assert len(_fetch(html, max_errors=2)) == 1


def test_scrape_context_counts():
    ctx = ScrapeContext(max_errors=3)
    ctx.record("one")
    ctx.record("two")
    assert ctx.error_count == 2
    with pytest.raises(ScrapeErrorLimitError):
        ctx.record("three")
