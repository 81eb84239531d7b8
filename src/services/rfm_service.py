"""
RFM (Recency, Frequency, Monetary) classification.

Each component is bucketed into a 1-5 score and the triple is mapped to one
of twelve marketing segments by an ordered rule cascade (first match wins).
Only PAID sales count toward frequency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from config.settings import AnalyticsSettings, get_settings
from models.analytics import RFMAnalysis, RFMScore, RFMSegment
from models.customer import CustomerSnapshot
from repositories.postgres_repo import AnalyticsRepository, get_repository
from utils.concurrency import fan_out
from utils.dates import days_between, resolve_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Recency used when a customer has never visited; lands in the worst bucket.
NO_VISIT_RECENCY_DAYS = 999

RECENCY_BUCKETS: Tuple[Tuple[int, int], ...] = ((30, 5), (60, 4), (90, 3), (180, 2))
FREQUENCY_BUCKETS: Tuple[Tuple[int, int], ...] = ((20, 5), (10, 4), (5, 3), (2, 2))

SegmentRule = Tuple[RFMSegment, Callable[[int, int, int], bool]]

# Evaluated top to bottom. Earlier rules shadow later ones: "New Customers"
# covers "Promising", and "About to Sleep" (r <= 2, f >= 3) covers both "At Risk"
# and "Cannot Lose Them", which also share a predicate. Order is part of the contract.
RFM_SEGMENT_RULES: Tuple[SegmentRule, ...] = (
    (RFMSegment.CHAMPIONS, lambda r, f, m: r >= 4 and f >= 4 and m >= 4),
    (RFMSegment.LOYAL_CUSTOMERS, lambda r, f, m: r >= 4 and f >= 4 and m >= 3),
    (RFMSegment.POTENTIAL_LOYALISTS, lambda r, f, m: r >= 4 and f >= 3 and m >= 4),
    (RFMSegment.NEW_CUSTOMERS, lambda r, f, m: r >= 4 and f <= 2),
    (RFMSegment.PROMISING, lambda r, f, m: r >= 4 and f <= 2 and m >= 3),
    (RFMSegment.NEED_ATTENTION, lambda r, f, m: r == 3),
    (RFMSegment.ABOUT_TO_SLEEP, lambda r, f, m: r <= 2 and f >= 3),
    (RFMSegment.AT_RISK, lambda r, f, m: r <= 2 and f >= 4 and m >= 4),
    (RFMSegment.CANNOT_LOSE_THEM, lambda r, f, m: r <= 2 and f >= 4 and m >= 4),
    (RFMSegment.HIBERNATING, lambda r, f, m: r <= 2 and f <= 2 and m >= 3),
    (RFMSegment.LOST, lambda r, f, m: r <= 2 and f <= 2 and m <= 2),
)

SEGMENT_RECOMMENDATIONS: Dict[RFMSegment, List[str]] = {
    RFMSegment.CHAMPIONS: [
        "Reward them with exclusive offers",
        "Ask for referrals and testimonials",
        "Upsell premium products/services",
    ],
    RFMSegment.LOYAL_CUSTOMERS: [
        "Offer loyalty program benefits",
        "Introduce new products to them",
        "Request feedback and reviews",
    ],
    RFMSegment.POTENTIAL_LOYALISTS: [
        "Create brand awareness campaigns",
        "Offer membership or subscription programs",
        "Provide personalized recommendations",
    ],
    RFMSegment.NEW_CUSTOMERS: [
        "Send welcome series emails",
        "Offer first-time buyer discounts",
        "Educate about your products/services",
    ],
    RFMSegment.NEED_ATTENTION: [
        "Re-engage with special offers",
        "Send personalized messages",
        "Ask why they haven't purchased recently",
    ],
    RFMSegment.ABOUT_TO_SLEEP: [
        "Win-back campaign with discounts",
        "Remind them of your value proposition",
        "Offer reactivation incentives",
    ],
    RFMSegment.AT_RISK: [
        "Urgent win-back campaign",
        "Offer significant discounts",
        "Personal outreach from management",
    ],
    RFMSegment.CANNOT_LOSE_THEM: [
        "Immediate personal contact",
        "Offer exclusive deals",
        "Create VIP program for them",
    ],
    RFMSegment.HIBERNATING: [
        "Reactivation campaign",
        'Offer "new customer" deals',
        "Survey to understand why they left",
    ],
    RFMSegment.LOST: [
        "Win-back campaign with aggressive pricing",
        "Survey to understand churn reasons",
        "Consider removing from active marketing",
    ],
}

DEFAULT_RECOMMENDATIONS = ["Continue regular engagement", "Monitor for changes in behavior"]


def _bucket(value: float, buckets: Tuple[Tuple[int, int], ...], descending: bool) -> int:
    for threshold, score in buckets:
        if (value <= threshold) if descending else (value >= threshold):
            return score
    return 1


def recency_score(days: int) -> int:
    """Fewer days since the last visit scores higher."""
    return _bucket(days, RECENCY_BUCKETS, descending=True)


def frequency_score(completed_sales: int) -> int:
    return _bucket(completed_sales, FREQUENCY_BUCKETS, descending=False)


def monetary_score(total_spent: float, settings: Optional[AnalyticsSettings] = None) -> int:
    thresholds = (settings or get_settings()).monetary_thresholds
    for score, threshold in zip((5, 4, 3, 2), thresholds):
        if total_spent >= threshold:
            return score
    return 1


def rfm_segment(recency: int, frequency: int, monetary: int) -> RFMSegment:
    for segment, predicate in RFM_SEGMENT_RULES:
        if predicate(recency, frequency, monetary):
            return segment
    return RFMSegment.REGULAR


def calculate_rfm_score(
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> RFMScore:
    """Score a customer snapshot on recency, frequency and monetary value."""
    now = resolve_now(now)
    days = days_between(customer.last_visit, now)
    recency = recency_score(NO_VISIT_RECENCY_DAYS if days is None else days)
    frequency = frequency_score(len(customer.paid_sales))
    monetary = monetary_score(customer.total_spent, settings)

    return RFMScore(
        recency=recency,
        frequency=frequency,
        monetary=monetary,
        rfm_score=f"{recency}{frequency}{monetary}",
        segment=rfm_segment(recency, frequency, monetary),
    )


def rfm_recommendations(score: RFMScore) -> List[str]:
    """Segment playbook plus notes for each weak component."""
    recommendations = list(SEGMENT_RECOMMENDATIONS.get(score.segment, DEFAULT_RECOMMENDATIONS))
    if score.recency <= 2:
        recommendations.append("Focus on improving recency with time-sensitive offers")
    if score.frequency <= 2:
        recommendations.append("Increase purchase frequency with subscription or bundle offers")
    if score.monetary <= 2:
        recommendations.append("Increase order value with upsells and cross-sells")
    return recommendations


def analyze_customer_rfm(
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> RFMAnalysis:
    score = calculate_rfm_score(customer, now=now, settings=settings)
    return RFMAnalysis(
        customer_id=customer.id,
        customer_name=customer.name,
        rfm_score=score,
        recommendations=rfm_recommendations(score),
    )


@dataclass
class RFMService:
    """RFM analysis against the persistence collaborator."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_rfm_analysis(
        self, customer: CustomerSnapshot, now: Optional[datetime] = None
    ) -> RFMAnalysis:
        return analyze_customer_rfm(customer, now=now, settings=self.settings)

    def get_customer_rfm_analysis(
        self, customer_id: str, now: Optional[datetime] = None
    ) -> RFMAnalysis:
        customer = self.repository.get_customer_with_sales(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return analyze_customer_rfm(customer, now=now, settings=self.settings)

    def get_all_customers_rfm(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> List[RFMAnalysis]:
        now = resolve_now(now)
        customers = self.repository.list_customers_with_sales(owner_id)
        analyses = fan_out(
            lambda c: analyze_customer_rfm(c, now=now, settings=self.settings),
            customers,
            self.settings.max_workers,
        )
        logger.info(
            "RFM analysis complete", extra={"owner_id": owner_id, "customers": len(analyses)}
        )
        return analyses
