"""
Export helpers for the ranked results.

All functions write to disk and return the written ``Path``.

The results CSV holds two blocks in one file so it opens directly in Excel:

  Ticker,Sector,Return,MTD_%,Bars,First_Close,Last_Close
  NVDA,Information Technology,0.123456,12.35%,21,100.0,112.3456
  ...
  <blank row>
  Sector,Avg_Return,Ticker_Count
  Information Technology,0.034567,68
  ...

``Return`` and ``Avg_Return`` use six decimals; ``MTD_%`` is the return in
percent with two decimals. Closes are written exactly as the provider gave them.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from mtd_ranker.models.results import ResultSet

INSTRUMENT_COLUMNS = ["Ticker", "Sector", "Return", "MTD_%", "Bars", "First_Close", "Last_Close"]
SECTOR_COLUMNS = ["Sector", "Avg_Return", "Ticker_Count"]


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` to a pretty-printed JSON file (parent dirs created)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


def instrument_rows(result_set: ResultSet) -> list[dict]:
    """One formatted CSV row per ranked instrument."""
    return [
        {
            "Ticker":      r.symbol,
            "Sector":      r.group,
            "Return":      f"{r.return_value:.6f}",
            "MTD_%":       f"{r.return_pct:.2f}%",
            "Bars":        str(r.bar_count),
            "First_Close": str(r.first_close),
            "Last_Close":  str(r.last_close),
        }
        for r in result_set.items
    ]


def sector_rows(result_set: ResultSet) -> list[dict]:
    """One formatted CSV row per ranked sector."""
    return [
        {
            "Sector":       c.group,
            "Avg_Return":   f"{c.average_return:.6f}",
            "Ticker_Count": str(c.member_count),
        }
        for c in result_set.categories
    ]


def write_results_csv(result_set: ResultSet, path: Path) -> Path:
    """Write the instrument block, a blank row, then the sector block.

    An empty ``ResultSet`` still produces both header rows.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=INSTRUMENT_COLUMNS)
        writer.writeheader()
        writer.writerows(instrument_rows(result_set))

        csv.writer(f).writerow([])

        writer = csv.DictWriter(f, fieldnames=SECTOR_COLUMNS)
        writer.writeheader()
        writer.writerows(sector_rows(result_set))
    return path


def snapshot_to_dict(result_set: ResultSet) -> dict:
    """JSON-ready dict of a snapshot, as written by ``refresh --json``."""
    return {
        "generated_at": result_set.generated_at.isoformat(),
        "window_start": result_set.window_start.isoformat() if result_set.window_start else None,
        "window_end":   result_set.window_end.isoformat() if result_set.window_end else None,
        "results":      [r.to_api_dict() for r in result_set.items],
        "sectors":      [c.to_api_dict() for c in result_set.categories],
    }
