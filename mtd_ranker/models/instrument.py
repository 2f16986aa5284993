"""
Input-side models — what the collaborators hand to the pipeline.

``Instrument`` is produced by the ticker source; ``PriceBar`` by the
market-data provider. Both are frozen: the pipeline reads them, never
mutates them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

UNKNOWN_GROUP = "Unknown"
MAX_SYMBOL_LENGTH = 10


class Instrument(BaseModel):
    """One tradable symbol with its grouping label (GICS sector).

    Attributes:
        symbol: Ticker symbol, whitespace-stripped, 1–9 characters.
        group:  Category label; blank or missing becomes ``"Unknown"``.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    group: str = UNKNOWN_GROUP

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must be non-empty.")
        if len(v) >= MAX_SYMBOL_LENGTH:
            raise ValueError(
                f"symbol '{v}' must be shorter than {MAX_SYMBOL_LENGTH} characters."
            )
        if any(c.isspace() for c in v):
            raise ValueError(f"symbol '{v}' must not contain whitespace.")
        return v

    @field_validator("group", mode="before")
    @classmethod
    def default_group(cls, v: object) -> str:
        if v is None:
            return UNKNOWN_GROUP
        v = str(v).strip()
        return v or UNKNOWN_GROUP


class PriceBar(BaseModel):
    """A single daily bar; only the close is used by the return calculator."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    close: Decimal
