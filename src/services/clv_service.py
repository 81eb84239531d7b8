"""
Customer lifetime value estimation.

CLV = average order value * purchases per month * predicted lifespan
(months) - acquisition cost, floored at zero. Lifespan comes from a
recency-driven monthly churn probability stretched by purchase count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from config.settings import AnalyticsSettings, get_settings
from models.analytics import CLVSummary, CustomerLifetimeValue, ValueTier
from models.customer import CustomerSnapshot
from repositories.postgres_repo import AnalyticsRepository, get_repository
from utils.concurrency import fan_out
from utils.dates import days_between, resolve_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)

NEW_CUSTOMER_DAYS = 90
NEW_CUSTOMER_LIFESPAN = 24.0
SINGLE_PURCHASE_LIFESPAN = 12.0
BASE_MONTHLY_CHURN = 0.1
MIN_LIFESPAN = 6.0
MAX_LIFESPAN = 60.0
PROJECTION_MONTHS = 12


def monthly_churn_probability(days_since_last_visit: Optional[int]) -> float:
    if days_since_last_visit is None:
        return BASE_MONTHLY_CHURN
    if days_since_last_visit > 90:
        return 0.5
    if days_since_last_visit > 60:
        return 0.3
    return BASE_MONTHLY_CHURN


def predicted_lifespan(
    customer: CustomerSnapshot, paid_sale_count: int, now: datetime
) -> float:
    """Expected remaining relationship length in months."""
    if paid_sale_count == 0:
        return 0.0

    age_days = days_between(customer.first_visit, now)
    if age_days is not None and age_days < NEW_CUSTOMER_DAYS:
        return NEW_CUSTOMER_LIFESPAN
    if paid_sale_count < 2:
        return SINGLE_PURCHASE_LIFESPAN

    churn = monthly_churn_probability(days_between(customer.last_visit, now))
    frequency_multiplier = min(2.0, 1 + paid_sale_count / 20)
    lifespan = (1 / churn) * frequency_multiplier
    return max(MIN_LIFESPAN, min(MAX_LIFESPAN, lifespan))


def value_tier(clv: float, settings: AnalyticsSettings) -> ValueTier:
    if clv >= settings.clv_high_tier:
        return ValueTier.HIGH
    if clv >= settings.clv_medium_tier:
        return ValueTier.MEDIUM
    return ValueTier.LOW


def clv_recommendations(
    tier: ValueTier,
    frequency: float,
    average_order_value: float,
    lifespan: float,
    settings: AnalyticsSettings,
) -> List[str]:
    if tier == ValueTier.HIGH:
        recommendations = [
            "VIP treatment: Assign dedicated account manager",
            "Exclusive offers and early access to new products",
            "Request testimonials and case studies",
            "Referral program incentives",
        ]
    elif tier == ValueTier.MEDIUM:
        recommendations = [
            "Loyalty program enrollment",
            "Regular personalized communications",
            "Cross-sell complementary products",
        ]
    else:
        recommendations = [
            "Increase engagement with targeted campaigns",
            "Improve purchase frequency with subscription options",
            "Increase order value with bundle offers",
        ]

    if frequency < 1:
        recommendations += [
            "Focus on increasing purchase frequency",
            "Consider subscription or membership model",
        ]
    if average_order_value < settings.clv_low_order_value:
        recommendations += [
            "Upsell higher-value products",
            "Create bundle offers to increase order size",
        ]
    if lifespan < 12:
        recommendations += [
            "Win-back campaigns to extend customer relationship",
            "Improve customer satisfaction and retention",
        ]
    return recommendations


def calculate_customer_lifetime_value(
    customer: CustomerSnapshot,
    acquisition_cost: float = 0.0,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> CustomerLifetimeValue:
    now = resolve_now(now)
    settings = settings or get_settings()
    paid_count = len(customer.paid_sales)

    average_order_value = customer.total_spent / paid_count if paid_count else 0.0

    purchase_frequency = 0.0
    if customer.first_visit is not None:
        months_active = max(1, days_between(customer.first_visit, now)) / 30
        purchase_frequency = paid_count / months_active

    lifespan = predicted_lifespan(customer, paid_count, now)
    raw_clv = average_order_value * purchase_frequency * lifespan - acquisition_cost
    tier = value_tier(raw_clv, settings)

    return CustomerLifetimeValue(
        customer_id=customer.id,
        customer_name=customer.name,
        clv=max(0.0, raw_clv),
        average_order_value=average_order_value,
        purchase_frequency=purchase_frequency,
        customer_lifespan=lifespan,
        predicted_future_value=max(
            0.0, average_order_value * purchase_frequency * PROJECTION_MONTHS
        ),
        customer_value_tier=tier,
        recommendations=clv_recommendations(
            tier, purchase_frequency, average_order_value, lifespan, settings
        ),
    )


def summarize_clv(values: List[CustomerLifetimeValue]) -> CLVSummary:
    total = sum(v.clv for v in values)
    counts = {tier: 0 for tier in ValueTier}
    for value in values:
        counts[value.customer_value_tier] += 1
    return CLVSummary(
        average_clv=total / len(values) if values else 0.0,
        total_clv=total,
        tier_counts=counts,
    )


@dataclass
class CLVService:
    """CLV estimation against the persistence collaborator."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_customer_clv(
        self,
        customer_id: str,
        acquisition_cost: float = 0.0,
        now: Optional[datetime] = None,
    ) -> CustomerLifetimeValue:
        customer = self.repository.get_customer_with_sales(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return calculate_customer_lifetime_value(
            customer, acquisition_cost, now=now, settings=self.settings
        )

    def get_all_customers_clv(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> List[CustomerLifetimeValue]:
        now = resolve_now(now)
        customers = self.repository.list_customers_with_sales(owner_id)
        return fan_out(
            lambda c: calculate_customer_lifetime_value(c, now=now, settings=self.settings),
            customers,
            self.settings.max_workers,
        )

    def get_average_clv(self, owner_id: str, now: Optional[datetime] = None) -> CLVSummary:
        summary = summarize_clv(self.get_all_customers_clv(owner_id, now=now))
        logger.info(
            "CLV summary computed",
            extra={"owner_id": owner_id, "average_clv": round(summary.average_clv, 2)},
        )
        return summary
