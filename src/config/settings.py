"""
Tunable analytics constants.

Currency thresholds are business-specific, so they are injected here rather
than hard-coded in the scorers. Defaults match a small retail business
trading in Leones.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class AnalyticsSettings:
    """Constants shared by the scorers, forecaster and insight feed."""

    # Loyalty
    spend_ceiling: float = 1_000_000.0  # totalSpent that earns the full spend score
    target_visits_per_month: float = 4.0

    # RFM monetary buckets, highest first (score 5, 4, 3, 2).
    monetary_thresholds: Tuple[float, float, float, float] = (
        1_000_000.0,
        500_000.0,
        200_000.0,
        50_000.0,
    )

    # CLV
    clv_high_tier: float = 500_000.0
    clv_medium_tier: float = 100_000.0
    clv_low_order_value: float = 50_000.0

    # Churn
    recent_window_days: int = 90

    # Forecast
    forecast_months_ahead: int = 6
    forecast_history_months: int = 12
    smoothing_alpha: float = 0.3

    # Insight feed
    currency: str = "SLL"
    top_customers_limit: int = 10
    best_products_limit: int = 5
    sales_trend_months: int = 6

    # Fan-out
    max_workers: int = 8

    @classmethod
    def from_environment(cls) -> "AnalyticsSettings":
        """Load settings, overriding defaults from environment variables."""
        overrides = {}
        float_vars = {
            "LOYALTY_SPEND_CEILING": "spend_ceiling",
            "LOYALTY_TARGET_VISITS": "target_visits_per_month",
            "CLV_HIGH_TIER": "clv_high_tier",
            "CLV_MEDIUM_TIER": "clv_medium_tier",
            "CLV_LOW_ORDER_VALUE": "clv_low_order_value",
            "FORECAST_SMOOTHING_ALPHA": "smoothing_alpha",
        }
        int_vars = {
            "CHURN_RECENT_WINDOW_DAYS": "recent_window_days",
            "FORECAST_MONTHS_AHEAD": "forecast_months_ahead",
            "FORECAST_HISTORY_MONTHS": "forecast_history_months",
            "ANALYTICS_MAX_WORKERS": "max_workers",
        }
        for env_name, attr in float_vars.items():
            if os.environ.get(env_name):
                overrides[attr] = float(os.environ[env_name])
        for env_name, attr in int_vars.items():
            if os.environ.get(env_name):
                overrides[attr] = int(os.environ[env_name])
        if os.environ.get("RFM_MONETARY_THRESHOLDS"):
            values = [float(v) for v in os.environ["RFM_MONETARY_THRESHOLDS"].split(",")]
            if len(values) == 4:
                overrides["monetary_thresholds"] = tuple(sorted(values, reverse=True))
        if os.environ.get("ANALYTICS_CURRENCY"):
            overrides["currency"] = os.environ["ANALYTICS_CURRENCY"]
        return cls(**overrides)


_settings: Optional[AnalyticsSettings] = None


def get_settings() -> AnalyticsSettings:
    """Lazily load settings once per container."""
    global _settings
    if _settings is None:
        _settings = AnalyticsSettings.from_environment()
    return _settings
