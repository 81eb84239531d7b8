"""
Revenue forecasting.

Builds a monthly revenue history from completed sales and projects it
forward with a weighted ensemble of exponential smoothing, linear
regression, short- and long-term averages, with optional calendar-month
seasonal factors, a decaying trend adjustment, confidence tiers and
prediction bounds.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd

from config.settings import AnalyticsSettings, get_settings
from models.analytics import ForecastConfidence, ForecastPeriod, ForecastSignals
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.metrics import (
    exponential_smoothing,
    linear_regression_forecast,
    linear_regression_slope,
    moving_average,
    variance,
)
from services.monthly_series import current_period, month_periods, monthly_totals, period_bounds
from utils.dates import resolve_now
from utils.logging_config import get_logger

logger = get_logger(__name__)

INSUFFICIENT_DATA = "Insufficient historical data"

SHORT_TERM_MONTHS = 3
TREND_MONTHS = 6

# Ensemble weights.
SMOOTHING_WEIGHT = 0.30
REGRESSION_WEIGHT = 0.25
SHORT_TERM_WEIGHT = 0.25
LONG_TERM_WEIGHT = 0.20

SEASONAL_MIN_SAMPLES = 2
SEASONAL_MIN_DEVIATION = 0.1


def detect_seasonality(values: Sequence[float], months: Sequence[int]) -> Dict[int, float]:
    """
    Multiplicative factor per calendar month (1-12).

    A month gets a factor only with at least two samples and an average
    deviating more than 10% from the overall average.
    """
    overall = moving_average(values)
    if overall == 0:
        return {}

    grouped: Dict[int, List[float]] = defaultdict(list)
    for month, value in zip(months, values):
        grouped[month].append(value)

    factors = {}
    for month, samples in grouped.items():
        month_avg = moving_average(samples)
        if (
            len(samples) >= SEASONAL_MIN_SAMPLES
            and abs(month_avg - overall) / overall > SEASONAL_MIN_DEVIATION
        ):
            factors[month] = month_avg / overall
    return factors


def compute_signals(
    values: Sequence[float], months: Sequence[int], alpha: float = 0.3
) -> ForecastSignals:
    values = list(values)
    return ForecastSignals(
        short_term_average=moving_average(values[-SHORT_TERM_MONTHS:]),
        long_term_average=moving_average(values),
        trend=linear_regression_slope(values[-TREND_MONTHS:]),
        exponential_smoothing=exponential_smoothing(values, alpha),
        linear_forecast=linear_regression_forecast(values),
        variance=variance(values),
        seasonal_factors=detect_seasonality(values, months),
    )


def ensemble_forecast(signals: ForecastSignals, horizon: int) -> float:
    """Weighted combination of the independent estimates for step ``horizon``."""
    return (
        SMOOTHING_WEIGHT * signals.exponential_smoothing
        + REGRESSION_WEIGHT * (signals.linear_forecast + signals.trend * horizon)
        + SHORT_TERM_WEIGHT * signals.short_term_average
        + LONG_TERM_WEIGHT * signals.long_term_average
    )


def trend_decay(trend: float, horizon: int) -> float:
    return 1 + trend * max(0.5, 1 - horizon * 0.1) * 0.01


def coefficient_of_variation(signals: ForecastSignals) -> float:
    if signals.variance <= 0:
        return 0.0
    if signals.long_term_average <= 0:
        return math.inf
    return math.sqrt(signals.variance) / signals.long_term_average


def confidence_for(cv: float, horizon: int) -> ForecastConfidence:
    adjusted = cv + horizon * 0.05
    if adjusted < 0.2 and horizon <= 3:
        return ForecastConfidence.HIGH
    if adjusted < 0.4 and horizon <= 6:
        return ForecastConfidence.MEDIUM
    return ForecastConfidence.LOW


def _round_currency(value: float) -> int:
    return int(math.floor(value + 0.5))


def _forecast_factors(
    signals: ForecastSignals,
    future: pd.Period,
    horizon: int,
    confidence: ForecastConfidence,
) -> List[str]:
    factors = []
    if signals.trend > 0:
        factors.append("Positive growth trend detected")
    elif signals.trend < 0:
        factors.append("Declining trend detected")
    if signals.short_term_average > signals.long_term_average * 1.1:
        factors.append("Recent performance significantly above average")
    elif signals.short_term_average < signals.long_term_average * 0.9:
        factors.append("Recent performance below average")
    if future.month in signals.seasonal_factors:
        factors.append(f"Seasonal adjustment applied for {future.strftime('%B')}")
    if confidence == ForecastConfidence.LOW:
        factors.append("High uncertainty due to data volatility or long forecast horizon")
    if horizon > 3:
        factors.append("Long-term forecast - accuracy decreases with distance")
    return factors


def insufficient_data_forecast(now: datetime, months_ahead: int) -> List[ForecastPeriod]:
    base = current_period(now)
    return [
        ForecastPeriod(
            period=(base + i).strftime("%Y-%m"),
            forecasted_revenue=0,
            confidence=ForecastConfidence.LOW,
            lower_bound=0,
            upper_bound=0,
            factors=[INSUFFICIENT_DATA],
        )
        for i in range(1, months_ahead + 1)
    ]


def forecast_from_history(
    values: Sequence[float],
    months: Sequence[int],
    months_ahead: int,
    now: Optional[datetime] = None,
    alpha: float = 0.3,
) -> List[ForecastPeriod]:
    """
    Forecast the ``months_ahead`` months after the month of ``now``.

    ``values`` is the monthly revenue history, oldest first, ending with the
    current month; ``months`` holds the calendar month (1-12) of each value.
    """
    now = resolve_now(now)
    values = [float(v) for v in values]
    if not values or sum(values) <= 0:
        return insufficient_data_forecast(now, months_ahead)

    signals = compute_signals(values, months, alpha)
    cv = coefficient_of_variation(signals)
    stddev = math.sqrt(signals.variance)
    base = current_period(now)

    forecasts = []
    for horizon in range(1, months_ahead + 1):
        future = base + horizon
        value = ensemble_forecast(signals, horizon)
        seasonal = signals.seasonal_factors.get(future.month)
        if seasonal is not None:
            value *= seasonal
        value = max(0.0, value * trend_decay(signals.trend, horizon))

        confidence = confidence_for(cv, horizon)
        interval = (1.5 + horizon * 0.2) * stddev

        forecasts.append(
            ForecastPeriod(
                period=future.strftime("%Y-%m"),
                forecasted_revenue=_round_currency(value),
                confidence=confidence,
                lower_bound=max(0, _round_currency(value - interval)),
                upper_bound=max(0, _round_currency(value + interval)),
                factors=_forecast_factors(signals, future, horizon, confidence),
            )
        )
    return forecasts


@dataclass
class ForecastService:
    """Revenue forecasting over an owner's completed sales."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_revenue_history(
        self, owner_id: str, historical_months: int, now: Optional[datetime] = None
    ) -> pd.Series:
        """Monthly completed revenue indexed by period label, oldest first."""
        now = resolve_now(now)
        periods = month_periods(now, historical_months)
        if len(periods) == 0:
            return pd.Series(dtype=float)
        start, end = period_bounds(periods)
        sales = self.repository.list_completed_sales(owner_id, start, end)
        return monthly_totals(sales, periods)["revenue"]

    def forecast_revenue(
        self,
        owner_id: str,
        months_ahead: Optional[int] = None,
        historical_months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[ForecastPeriod]:
        now = resolve_now(now)
        if months_ahead is None:
            months_ahead = self.settings.forecast_months_ahead
        if historical_months is None:
            historical_months = self.settings.forecast_history_months

        history = self.get_revenue_history(owner_id, historical_months, now)
        months = [int(label[5:7]) for label in history.index]
        forecasts = forecast_from_history(
            history.tolist(), months, months_ahead, now, self.settings.smoothing_alpha
        )
        logger.info(
            "Revenue forecast computed",
            extra={
                "owner_id": owner_id,
                "months_ahead": months_ahead,
                "historical_months": historical_months,
                "history_total": float(history.sum()) if len(history) else 0.0,
            },
        )
        return forecasts
