"""
ASCII terminal formatters for CLI commands.

All formatters accept a ``ResultSet`` (or a ``RefreshResult``) and return
plain multi-line strings suitable for ``typer.echo()``.

No third-party dependencies (no ``rich``, no ``colorama``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from mtd_ranker.models.results import ResultSet

if TYPE_CHECKING:
    from mtd_ranker.pipeline.refresh import RefreshResult


# ── Refresh summary ───────────────────────────────────────────────────────────


def format_refresh_summary(result: "RefreshResult", max_errors_shown: int = 10) -> str:
    """One block describing how a refresh went.

    Args:
        result:           Outcome of ``RefreshController.refresh``.
        max_errors_shown: Per-instrument errors listed before truncating.

    Returns:
        Multi-line string.
    """
    lines: list[str] = []
    lines.append("")
    lines.append(f"=== Refresh: {result.status.upper()} ===")
    if result.window is not None:
        lines.append(f"  Window:      {result.window.start} .. {result.window.end}")
    lines.append(f"  Instruments: {result.succeeded}/{result.instruments} ok")
    if result.cancelled:
        lines.append("  Cancelled:   deadline or cancel signal; results are partial")
    if result.csv_path:
        lines.append(f"  CSV:         {result.csv_path}")
    if result.error:
        lines.append(f"  Error:       {result.error}")

    if result.item_errors:
        lines.append(f"  Skipped ({len(result.item_errors)}):")
        for message in result.item_errors[:max_errors_shown]:
            lines.append(f"    - {message}")
        hidden = len(result.item_errors) - max_errors_shown
        if hidden > 0:
            lines.append(f"    ... and {hidden} more")
    return "\n".join(lines)


# ── Rankings ──────────────────────────────────────────────────────────────────


def format_results_table(result_set: Optional[ResultSet], top_n: Optional[int] = 20) -> str:
    """Ranked instruments, best first.

    Args:
        result_set: Snapshot to render; ``None`` means never populated.
        top_n:      Rows shown; ``None`` shows everything.
    """
    lines: list[str] = ["", "=== Instrument Returns ==="]
    if result_set is None or result_set.is_empty:
        lines.append("  (no results; run 'refresh' first)")
        return "\n".join(lines)

    lines.append(f"  Generated at: {result_set.generated_at.isoformat()}")
    lines.append("")
    header = (
        f"  {'Rank':>4}  {'Ticker':<9}  {'Sector':<26}  {'Return':>9}  "
        f"{'Bars':>4}  {'First':>10}  {'Last':>10}"
    )
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))

    shown = result_set.items if top_n is None else result_set.items[:top_n]
    for rank, r in enumerate(shown, start=1):
        lines.append(
            f"  {rank:>4}  {r.symbol:<9}  {r.group[:26]:<26}  {r.return_value:>+9.2%}  "
            f"{r.bar_count:>4}  {_short(r.first_close):>10}  {_short(r.last_close):>10}"
        )
    hidden = len(result_set.items) - len(shown)
    if hidden > 0:
        lines.append(f"  ... {hidden} more")
    return "\n".join(lines)


def format_sector_table(result_set: Optional[ResultSet]) -> str:
    """Sector averages, best first."""
    lines: list[str] = ["", "=== Sector Averages ==="]
    if result_set is None or result_set.is_empty:
        lines.append("  (no results; run 'refresh' first)")
        return "\n".join(lines)

    lines.append("")
    header = f"  {'Sector':<26}  {'Avg Return':>10}  {'Tickers':>7}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for c in result_set.categories:
        lines.append(f"  {c.group[:26]:<26}  {c.average_return:>+10.2%}  {c.member_count:>7}")
    return "\n".join(lines)


def _short(value) -> str:
    text = str(value)
    return text if len(text) <= 10 else f"{float(value):.4f}"
