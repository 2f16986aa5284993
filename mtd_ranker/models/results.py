"""
Output-side models — per-instrument returns and the ranked snapshot.

``ResultSet`` is the unit of cache replacement. It is built once per refresh
by the aggregator, validated on construction, installed by reference and
then only ever read. Collections are tuples so a frozen model is frozen all
the way down.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from mtd_ranker.models.instrument import UNKNOWN_GROUP


class ReturnRecord(BaseModel):
    """Validated return for one instrument over the refresh window.

    Attributes:
        symbol:       Ticker symbol.
        group:        Sector / category label.
        return_value: ``last_close / first_close - 1`` narrowed to float.
        bar_count:    Number of bars consumed (>= 1).
        first_close:  Close of the first bar in the window.
        last_close:   Close of the last bar in the window.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    group: str = UNKNOWN_GROUP
    return_value: float
    bar_count: int
    first_close: Decimal
    last_close: Decimal

    @field_validator("return_value")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f"return_value must be finite, got {v}.")
        return v

    @field_validator("bar_count")
    @classmethod
    def validate_bar_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"bar_count must be >= 1, got {v}.")
        return v

    @field_validator("first_close")
    @classmethod
    def validate_first_close(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("first_close must be non-zero.")
        return v

    @property
    def return_pct(self) -> float:
        """Return expressed in percent (``0.1`` → ``10.0``)."""
        return self.return_value * 100

    def to_api_dict(self) -> dict[str, Any]:
        """Row shape served by ``GET /api/results``."""
        return {
            "ticker":      self.symbol,
            "sector":      self.group,
            "return":      self.return_value,
            "bar_count":   self.bar_count,
            "first_close": str(self.first_close),
            "last_close":  str(self.last_close),
        }


class CategorySummary(BaseModel):
    """Average return of one group. Derived; never stored outside a ResultSet."""

    model_config = ConfigDict(frozen=True)

    group: str
    average_return: float
    member_count: int

    @field_validator("member_count")
    @classmethod
    def validate_member_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"member_count must be >= 1, got {v}.")
        return v

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "sector":       self.group,
            "avg_return":   self.average_return,
            "ticker_count": self.member_count,
        }


class ResultSet(BaseModel):
    """Immutable ranked snapshot produced by one refresh.

    Attributes:
        items:        Records sorted by ``return_value`` descending.
        categories:   Group summaries sorted by ``average_return`` descending.
        generated_at: UTC time the snapshot was built.
        window_start: First day of the return window, if known.
        window_end:   Last day of the return window, if known.
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[ReturnRecord, ...] = ()
    categories: tuple[CategorySummary, ...] = ()
    generated_at: datetime
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    @model_validator(mode="after")
    def validate_ordering(self) -> "ResultSet":
        returns = [r.return_value for r in self.items]
        if any(a < b for a, b in zip(returns, returns[1:])):
            raise ValueError("items must be sorted by return_value descending.")
        averages = [c.average_return for c in self.categories]
        if any(a < b for a, b in zip(averages, averages[1:])):
            raise ValueError("categories must be sorted by average_return descending.")
        return self

    @model_validator(mode="after")
    def validate_partition(self) -> "ResultSet":
        item_groups = {r.group for r in self.items}
        category_groups = [c.group for c in self.categories]
        if len(category_groups) != len(set(category_groups)):
            raise ValueError("categories must not repeat a group.")
        if set(category_groups) != item_groups:
            raise ValueError("categories must cover exactly the groups present in items.")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.items
