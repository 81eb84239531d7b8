"""
Behavioral segmentation.

Partitions an owner's customers into six mutually exclusive segments. The
VIP cutoff is population-relative (top 10% by spend), so thresholds are
computed once per call over the whole customer base before any customer is
classified.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from config.settings import AnalyticsSettings, get_settings
from models.analytics import CustomerSegment, SegmentBucket, SegmentMember, SpendThresholds
from models.customer import CustomerSnapshot, PaymentStatus
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.metrics import percentile_value
from utils.dates import days_between, resolve_now
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CustomerFacts:
    """Per-customer values the segment rules look at."""

    total_spent: float
    loyalty_score: int
    last_visit_days: Optional[int]
    first_visit_days: Optional[int]
    has_overdue_sale: bool


SegmentRule = Tuple[CustomerSegment, Callable[[CustomerFacts, SpendThresholds], bool]]


def _is_vip(facts: CustomerFacts, thresholds: SpendThresholds) -> bool:
    return facts.total_spent >= thresholds.top_10 and facts.loyalty_score >= 80


def _is_loyal(facts: CustomerFacts, thresholds: SpendThresholds) -> bool:
    return (
        facts.loyalty_score >= 70
        and facts.last_visit_days is not None
        and facts.last_visit_days <= 60
    )


def _is_inactive(facts: CustomerFacts, thresholds: SpendThresholds) -> bool:
    return facts.last_visit_days is None or facts.last_visit_days > 180


def _is_at_risk(facts: CustomerFacts, thresholds: SpendThresholds) -> bool:
    return (
        (facts.last_visit_days is not None and facts.last_visit_days > 90)
        or facts.loyalty_score < 40
        or facts.has_overdue_sale
    )


def _is_new(facts: CustomerFacts, thresholds: SpendThresholds) -> bool:
    return facts.first_visit_days is not None and facts.first_visit_days <= 90


# First match wins; customers matching none are REGULAR.
SEGMENT_RULES: Tuple[SegmentRule, ...] = (
    (CustomerSegment.VIP, _is_vip),
    (CustomerSegment.LOYAL, _is_loyal),
    (CustomerSegment.INACTIVE, _is_inactive),
    (CustomerSegment.AT_RISK, _is_at_risk),
    (CustomerSegment.NEW, _is_new),
)

# Order of buckets in the segmentation result.
SEGMENT_PRIORITY = (
    CustomerSegment.VIP,
    CustomerSegment.LOYAL,
    CustomerSegment.REGULAR,
    CustomerSegment.NEW,
    CustomerSegment.AT_RISK,
    CustomerSegment.INACTIVE,
)


def compute_spend_thresholds(customers: List[CustomerSnapshot]) -> SpendThresholds:
    spent = sorted((c.total_spent for c in customers), reverse=True)
    return SpendThresholds(
        top_10=percentile_value(spent, 0.10),
        top_25=percentile_value(spent, 0.25),
    )


def customer_facts(customer: CustomerSnapshot, now: datetime) -> CustomerFacts:
    return CustomerFacts(
        total_spent=customer.total_spent,
        loyalty_score=customer.loyalty_score,
        last_visit_days=days_between(customer.last_visit, now),
        first_visit_days=days_between(customer.first_visit, now),
        has_overdue_sale=any(s.payment_status == PaymentStatus.OVERDUE for s in customer.sales),
    )


def classify_customer(
    customer: CustomerSnapshot, thresholds: SpendThresholds, now: datetime
) -> CustomerSegment:
    facts = customer_facts(customer, now)
    for segment, rule in SEGMENT_RULES:
        if rule(facts, thresholds):
            return segment
    return CustomerSegment.REGULAR


def assign_segments(
    customers: List[CustomerSnapshot],
    now: Optional[datetime] = None,
    thresholds: Optional[SpendThresholds] = None,
) -> Dict[str, CustomerSegment]:
    """Map every customer id to exactly one behavioral segment."""
    now = resolve_now(now)
    if thresholds is None:
        thresholds = compute_spend_thresholds(customers)
    return {c.id: classify_customer(c, thresholds, now) for c in customers}


def build_segment_buckets(
    customers: List[CustomerSnapshot],
    now: Optional[datetime] = None,
    thresholds: Optional[SpendThresholds] = None,
) -> List[SegmentBucket]:
    """Non-empty segment buckets in priority order."""
    assignments = assign_segments(customers, now, thresholds)
    buckets = {segment: SegmentBucket(segment=segment) for segment in SEGMENT_PRIORITY}

    for customer in customers:
        bucket = buckets[assignments[customer.id]]
        bucket.count += 1
        bucket.total_value += customer.total_spent
        bucket.customers.append(
            SegmentMember(
                id=customer.id,
                name=customer.name,
                total_spent=customer.total_spent,
                loyalty_score=customer.loyalty_score,
            )
        )

    for bucket in buckets.values():
        if bucket.count:
            bucket.average_value = bucket.total_value / bucket.count

    return [buckets[segment] for segment in SEGMENT_PRIORITY if buckets[segment].count > 0]


@dataclass
class SegmentationService:
    """Behavioral segmentation over an owner's current customer base."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def segment_customers(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> List[SegmentBucket]:
        customers = self.repository.list_customers_with_sales(owner_id)
        thresholds = compute_spend_thresholds(customers)
        buckets = build_segment_buckets(customers, now, thresholds)
        logger.info(
            "Customers segmented",
            extra={
                "owner_id": owner_id,
                "customers": len(customers),
                "top_10_spend": thresholds.top_10,
                "top_25_spend": thresholds.top_25,
                "segments": {b.segment.value: b.count for b in buckets},
            },
        )
        return buckets

    def get_customers_by_segment(
        self, owner_id: str, segment: CustomerSegment, now: Optional[datetime] = None
    ) -> List[CustomerSnapshot]:
        """Customers in one segment, highest spend first."""
        customers = self.repository.list_customers_with_sales(owner_id)
        assignments = assign_segments(customers, now)
        members = [c for c in customers if assignments[c.id] == segment]
        return sorted(members, key=lambda c: c.total_spent, reverse=True)
