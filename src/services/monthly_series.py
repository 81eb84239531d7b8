"""Calendar-month bucketing of completed sales."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence, Tuple

import pandas as pd

from models.customer import SaleRecord


def current_period(now: datetime) -> pd.Period:
    return pd.Period(year=now.year, month=now.month, freq="M")


def month_periods(now: datetime, months: int) -> pd.PeriodIndex:
    """The ``months`` calendar months ending with the month of ``now``, oldest first."""
    return pd.period_range(end=current_period(now), periods=max(0, months), freq="M")


def period_start(period: pd.Period) -> datetime:
    return datetime(period.year, period.month, 1, tzinfo=timezone.utc)


def period_bounds(periods: Sequence[pd.Period]) -> Tuple[datetime, datetime]:
    """``[start, end)`` covering every period in the sequence."""
    return period_start(periods[0]), period_start(periods[-1] + 1)


def monthly_totals(sales: List[SaleRecord], periods: Sequence[pd.Period]) -> pd.DataFrame:
    """Revenue and order count per period label (``YYYY-MM``), zero-filled."""
    labels = [p.strftime("%Y-%m") for p in periods]
    if not sales:
        return pd.DataFrame({"revenue": 0.0, "orders": 0}, index=labels)

    frame = pd.DataFrame(
        {
            "period": [s.sale_date.strftime("%Y-%m") for s in sales],
            "revenue": [float(s.total_amount) for s in sales],
        }
    )
    grouped = frame.groupby("period")["revenue"].agg(["sum", "count"])
    grouped = grouped.reindex(labels, fill_value=0)
    return grouped.rename(columns={"sum": "revenue", "count": "orders"})
