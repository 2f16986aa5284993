"""
Per-instrument return calculation.

``compute_return`` consumes a bar iterable exactly once, keeping only the
first close, the last close and a count, so a lazily-fetched series is never
materialised. The ratio is computed in ``Decimal`` and narrowed to ``float``
as the very last step.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from mtd_ranker.errors import InvalidFirstCloseError, InvalidReturnError, NoDataError
from mtd_ranker.models.instrument import Instrument, PriceBar
from mtd_ranker.models.results import ReturnRecord


def compute_return(instrument: Instrument, bars: Iterable[PriceBar]) -> ReturnRecord:
    """Compute ``last_close / first_close - 1`` for one instrument.

    Exceptions raised while iterating ``bars`` (provider errors) propagate
    unchanged.

    Args:
        instrument: The instrument the bars belong to.
        bars:       Bars in chronological order.

    Returns:
        A validated ``ReturnRecord``.

    Raises:
        NoDataError:            ``bars`` yielded nothing.
        InvalidFirstCloseError: The first close is exactly zero.
        InvalidReturnError:     The ratio does not narrow to a finite float.
    """
    first: Optional[Decimal] = None
    last: Optional[Decimal] = None
    count = 0

    for bar in bars:
        if first is None:
            first = bar.close
        last = bar.close
        count += 1

    if count == 0 or first is None or last is None:
        raise NoDataError(instrument.symbol)
    if first == 0:
        raise InvalidFirstCloseError(instrument.symbol)

    try:
        ratio = last / first - 1
    except InvalidOperation as exc:
        raise InvalidReturnError(instrument.symbol, exc) from exc

    value = float(ratio)
    if not math.isfinite(value):
        raise InvalidReturnError(instrument.symbol, ratio)

    return ReturnRecord(
        symbol=instrument.symbol,
        group=instrument.group,
        return_value=value,
        bar_count=count,
        first_close=first,
        last_close=last,
    )
