"""
Ingestion layer — the two network collaborators of a refresh.

Submodules:
  ticker_source — S&P 500 constituents scraped from Wikipedia (httpx + pandas)
  market_data   — daily price bars from Yahoo Finance (yfinance)
"""
