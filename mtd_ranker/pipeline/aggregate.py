"""
Sector rollup and ranking.

Turns the per-instrument records of one refresh into an immutable
``ResultSet``: records ranked by return, and one ``CategorySummary`` per
group ranked by the simple mean of its members' returns.

Sorting relies on Python's stable sort, so equal returns keep the order in
which the records were supplied.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from mtd_ranker.models.instrument import UNKNOWN_GROUP
from mtd_ranker.models.results import CategorySummary, ResultSet, ReturnRecord
from mtd_ranker.utils.time_utils import DateWindow, utcnow


def group_records(records: Iterable[ReturnRecord]) -> "OrderedDict[str, list[ReturnRecord]]":
    """Bucket records by group, keeping first-seen group order."""
    groups: OrderedDict[str, list[ReturnRecord]] = OrderedDict()
    for record in records:
        groups.setdefault(record.group, []).append(record)
    return groups


def mean_return(records: list[ReturnRecord]) -> float:
    """Simple mean of ``return_value``, summed in ``Decimal``."""
    total = sum((Decimal(repr(r.return_value)) for r in records), Decimal(0))
    return float(total / len(records))


def aggregate(
    records: Iterable[ReturnRecord],
    generated_at: Optional[datetime] = None,
    window: Optional[DateWindow] = None,
) -> ResultSet:
    """Build a ranked ``ResultSet`` from per-instrument records.

    Args:
        records:      Successful records of one refresh, in any order.
        generated_at: Snapshot timestamp; defaults to now (UTC).
        window:       The return window the records were computed over.

    Returns:
        ``ResultSet`` with items and categories sorted descending.
    """
    normalized: list[ReturnRecord] = []
    for record in records:
        if not record.group.strip():
            record = record.model_copy(update={"group": UNKNOWN_GROUP})
        normalized.append(record)

    items = sorted(normalized, key=lambda r: r.return_value, reverse=True)

    summaries = [
        CategorySummary(
            group=group,
            average_return=mean_return(members),
            member_count=len(members),
        )
        for group, members in group_records(normalized).items()
    ]
    categories = sorted(summaries, key=lambda c: c.average_return, reverse=True)

    return ResultSet(
        items=tuple(items),
        categories=tuple(categories),
        generated_at=generated_at or utcnow(),
        window_start=window.start if window else None,
        window_end=window.end if window else None,
    )
