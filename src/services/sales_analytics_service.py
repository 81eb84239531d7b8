"""
Owner-level sales analytics: monthly trends, payment mix and best sellers.

Only COMPLETED sales count; the repository applies that filter.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pandas as pd

from config.settings import AnalyticsSettings, get_settings
from models.analytics import PaymentMethodShare, ProductPerformance, SalesTrendPeriod
from models.customer import SaleRecord
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.monthly_series import month_periods, monthly_totals, period_bounds
from utils.dates import resolve_now
from utils.logging_config import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def growth_rate(current: float, previous: Optional[float]) -> Optional[float]:
    """Percentage change from the previous period; None without a positive baseline."""
    if previous is None or previous <= 0:
        return None
    return (current - previous) / previous * 100


def build_sales_trends(
    sales: List[SaleRecord], periods: Sequence[pd.Period]
) -> List[SalesTrendPeriod]:
    totals = monthly_totals(sales, periods)
    trends: List[SalesTrendPeriod] = []
    previous = None
    for label, row in totals.iterrows():
        revenue = float(row["revenue"])
        orders = int(row["orders"])
        trends.append(
            SalesTrendPeriod(
                period=label,
                total_revenue=revenue,
                number_of_orders=orders,
                average_order_value=revenue / orders if orders else 0.0,
                growth_rate=growth_rate(revenue, previous),
            )
        )
        previous = revenue
    return trends


def payment_method_breakdown(sales: List[SaleRecord]) -> List[PaymentMethodShare]:
    """Share of revenue per payment method, largest first."""
    counts: Dict[str, int] = defaultdict(int)
    amounts: Dict[str, float] = defaultdict(float)
    for sale in sales:
        method = sale.payment_method or "UNKNOWN"
        counts[method] += 1
        amounts[method] += sale.total_amount

    total = sum(amounts.values())
    shares = [
        PaymentMethodShare(
            method=method,
            count=counts[method],
            total_amount=amount,
            percentage=amount / total * 100 if total > 0 else 0.0,
        )
        for method, amount in amounts.items()
    ]
    return sorted(shares, key=lambda s: s.total_amount, reverse=True)


def best_selling_products(sales: List[SaleRecord], limit: int = 10) -> List[ProductPerformance]:
    """Products by units sold, keyed by product id or, failing that, by name."""
    names: Dict[str, str] = {}
    quantities: Dict[str, int] = defaultdict(int)
    revenue: Dict[str, float] = defaultdict(float)
    for sale in sales:
        for item in sale.items:
            key = item.product_id or item.product_name
            names.setdefault(key, item.product_name)
            quantities[key] += item.quantity
            revenue[key] += item.total_price

    products = [
        ProductPerformance(
            product_id=key,
            product_name=names[key],
            total_quantity=quantity,
            total_revenue=revenue[key],
            average_price=revenue[key] / quantity if quantity > 0 else 0.0,
        )
        for key, quantity in quantities.items()
    ]
    products.sort(key=lambda p: p.total_quantity, reverse=True)
    return products[:limit]


@dataclass
class SalesAnalyticsService:
    """Sales aggregates over an owner's completed sales."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_sales_trends(
        self, owner_id: str, months: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[SalesTrendPeriod]:
        """One entry per calendar month, oldest first, ending with the current month."""
        periods = month_periods(resolve_now(now), months or self.settings.sales_trend_months)
        if len(periods) == 0:
            return []
        start, end = period_bounds(periods)
        sales = self.repository.list_completed_sales(owner_id, start, end)
        return build_sales_trends(sales, periods)

    def get_payment_method_analysis(
        self,
        owner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> List[PaymentMethodShare]:
        sales = self._sales_between(owner_id, start, end, now)
        return payment_method_breakdown(sales)

    def get_best_selling_products(
        self,
        owner_id: str,
        limit: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> List[ProductPerformance]:
        sales = self._sales_between(owner_id, start, end, now)
        products = best_selling_products(sales, limit or self.settings.best_products_limit)
        logger.info(
            "Best sellers computed",
            extra={"owner_id": owner_id, "sales": len(sales), "products": len(products)},
        )
        return products

    def _sales_between(
        self,
        owner_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        now: Optional[datetime],
    ) -> List[SaleRecord]:
        # Open-ended ranges cover all history up to now.
        start = start or EPOCH
        end = end or resolve_now(now)
        return self.repository.list_completed_sales(owner_id, start, end)
