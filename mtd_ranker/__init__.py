"""
mtd_ranker — S&P 500 month-to-date return ranker.

Scrapes the index constituents, fetches daily bars per ticker on a bounded
thread pool, ranks tickers and GICS sectors by return over a date window,
and serves the latest snapshot over HTTP.
"""

__version__ = "0.1.0"
