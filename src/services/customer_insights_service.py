"""360-degree customer insights combining the per-customer scorers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from config.settings import AnalyticsSettings, get_settings
from models.analytics import CustomerInsight, CustomerSegment, GrowthTrend, ProductQuantity
from models.customer import CustomerSnapshot
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.churn_service import calculate_churn_risk
from services.loyalty_service import calculate_loyalty_score
from services.segmentation_service import assign_segments
from utils.concurrency import fan_out
from utils.dates import age_days, days_between, resolve_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)

GROWTH_WINDOW_DAYS = 90
GROWTH_THRESHOLD_PCT = 10
TOP_PRODUCTS = 5


def preferred_payment_method(customer: CustomerSnapshot) -> Optional[str]:
    methods = Counter(s.payment_method for s in customer.sales if s.payment_method)
    if not methods:
        return None
    return methods.most_common(1)[0][0]


def top_products(customer: CustomerSnapshot, limit: int = TOP_PRODUCTS) -> List[ProductQuantity]:
    quantities: Counter = Counter()
    for sale in customer.sales:
        for item in sale.items:
            quantities[item.product_name] += item.quantity
    return [
        ProductQuantity(product_name=name, quantity=quantity)
        for name, quantity in quantities.most_common(limit)
    ]


def growth_trend(customer: CustomerSnapshot, now: datetime) -> GrowthTrend:
    """Compare spend in the last 90 days against the 90 days before."""
    recent = older = 0.0
    has_recent = has_older = False
    for sale in customer.sales:
        age = age_days(sale.sale_date, now)
        if age <= GROWTH_WINDOW_DAYS:
            recent += sale.total_amount
            has_recent = True
        elif age <= GROWTH_WINDOW_DAYS * 2:
            older += sale.total_amount
            has_older = True

    if has_recent and has_older:
        if older <= 0:
            return GrowthTrend.INCREASING if recent > 0 else GrowthTrend.STABLE
        change = (recent - older) / older * 100
        if change > GROWTH_THRESHOLD_PCT:
            return GrowthTrend.INCREASING
        if change < -GROWTH_THRESHOLD_PCT:
            return GrowthTrend.DECREASING
        return GrowthTrend.STABLE
    if has_recent:
        return GrowthTrend.INCREASING
    if has_older:
        return GrowthTrend.DECREASING
    return GrowthTrend.STABLE


def build_customer_insight(
    customer: CustomerSnapshot,
    segment: CustomerSegment,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> CustomerInsight:
    now = resolve_now(now)
    sales_count = len(customer.sales)
    return CustomerInsight(
        customer_id=customer.id,
        customer_name=customer.name,
        loyalty_score=calculate_loyalty_score(customer, now=now, settings=settings),
        churn_risk=calculate_churn_risk(customer, now=now, settings=settings),
        segment=segment,
        total_spent=customer.total_spent,
        total_visits=customer.total_visits,
        average_order_value=customer.total_spent / sales_count if sales_count else 0.0,
        last_visit_date=customer.last_visit,
        days_since_last_visit=days_between(customer.last_visit, now),
        preferred_payment_method=preferred_payment_method(customer),
        top_products=top_products(customer),
        growth_trend=growth_trend(customer, now),
    )


@dataclass
class CustomerInsightsService:
    """Per-customer insight views, segmented against the owner's whole base."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_customer_insights(
        self, customer_id: str, now: Optional[datetime] = None
    ) -> CustomerInsight:
        now = resolve_now(now)
        customer = self.repository.get_customer_with_sales(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        population = self.repository.list_customers_with_sales(customer.owner_id)
        segment = assign_segments(population, now).get(customer.id, CustomerSegment.REGULAR)
        return build_customer_insight(customer, segment, now, self.settings)

    def get_top_customers_insights(
        self, owner_id: str, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[CustomerInsight]:
        """Insights for the highest-spending customers, highest first."""
        now = resolve_now(now)
        limit = limit or self.settings.top_customers_limit
        population = self.repository.list_customers_with_sales(owner_id)
        segments = assign_segments(population, now)
        top = sorted(population, key=lambda c: c.total_spent, reverse=True)[:limit]
        insights = fan_out(
            lambda c: build_customer_insight(c, segments[c.id], now, self.settings),
            top,
            self.settings.max_workers,
        )
        logger.info(
            "Top customer insights built",
            extra={"owner_id": owner_id, "customers": len(insights)},
        )
        return insights
