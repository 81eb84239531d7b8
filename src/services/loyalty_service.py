"""
Loyalty scoring.

A customer's loyalty score (0-100) is the rounded sum of four weighted
factors: spend (40), visit frequency (30), recency (20) and payment
behavior (10). An optional RFM bonus shifts the score by up to +/-10 points.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from config.settings import AnalyticsSettings, get_settings
from models.analytics import LoyaltyBreakdown
from models.customer import CustomerSnapshot
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.rfm_service import calculate_rfm_score
from utils.concurrency import fan_out
from utils.dates import days_between, resolve_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)

SPEND_WEIGHT = 40
FREQUENCY_WEIGHT = 30
PAYMENT_WEIGHT = 10

# (max days since last visit, points), first match wins.
RECENCY_STEPS: Tuple[Tuple[int, int], ...] = ((7, 20), (30, 15), (90, 10), (180, 5))


def spend_score(total_spent: float, settings: AnalyticsSettings) -> float:
    return min(SPEND_WEIGHT, max(0.0, total_spent) / settings.spend_ceiling * SPEND_WEIGHT)


def frequency_score(
    customer: CustomerSnapshot, now: datetime, settings: AnalyticsSettings
) -> float:
    days_since_first = max(1, days_between(customer.first_visit, now) or 1)
    visits_per_month = customer.total_visits / days_since_first * 30
    score = visits_per_month / settings.target_visits_per_month * FREQUENCY_WEIGHT
    return max(0.0, min(FREQUENCY_WEIGHT, score))


def recency_score(customer: CustomerSnapshot, now: datetime) -> int:
    days = days_between(customer.last_visit, now)
    if days is None:
        return 0
    for max_days, points in RECENCY_STEPS:
        if days <= max_days:
            return points
    return 0


def payment_score(customer: CustomerSnapshot) -> float:
    """10 minus the share of overdue/pending sales; no sales keeps the full 10."""
    if not customer.sales:
        return float(PAYMENT_WEIGHT)
    issues = sum(1 for sale in customer.sales if sale.has_payment_issue)
    return max(0.0, PAYMENT_WEIGHT - issues / len(customer.sales) * PAYMENT_WEIGHT)


def _clamp_score(value: float) -> int:
    return int(min(100, max(0, math.floor(value + 0.5))))


def calculate_loyalty_breakdown(
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> LoyaltyBreakdown:
    """Base loyalty score with each factor's contribution."""
    now = resolve_now(now)
    settings = settings or get_settings()

    spend = spend_score(customer.total_spent, settings)
    frequency = frequency_score(customer, now, settings)
    recency = recency_score(customer, now)
    payment = payment_score(customer)

    return LoyaltyBreakdown(
        spend=spend,
        frequency=frequency,
        recency=recency,
        payment=payment,
        total=_clamp_score(spend + frequency + recency + payment),
    )


def with_rfm_bonus(
    compute: Callable[..., LoyaltyBreakdown],
) -> Callable[..., LoyaltyBreakdown]:
    """
    Wrap a loyalty computation so the result is nudged by the RFM average.

    The bonus is ``(avg(R, F, M) - 3) * 3.33``. If the RFM computation fails
    the base breakdown is returned unchanged.
    """

    def enhanced(
        customer: CustomerSnapshot,
        now: Optional[datetime] = None,
        settings: Optional[AnalyticsSettings] = None,
    ) -> LoyaltyBreakdown:
        base = compute(customer, now=now, settings=settings)
        try:
            rfm = calculate_rfm_score(customer, now=now, settings=settings)
            bonus = ((rfm.recency + rfm.frequency + rfm.monetary) / 3 - 3) * 3.33
        except Exception as exc:
            logger.warning(
                "RFM bonus failed; using base loyalty score",
                extra={"customer_id": customer.id, "error": str(exc)},
            )
            return base
        return base.model_copy(
            update={"rfm_bonus": bonus, "total": _clamp_score(base.total + bonus)}
        )

    return enhanced


calculate_loyalty_breakdown_with_rfm = with_rfm_bonus(calculate_loyalty_breakdown)


def calculate_loyalty_score(
    customer: CustomerSnapshot,
    use_rfm: bool = False,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> int:
    """Loyalty score in [0, 100] for a customer snapshot."""
    compute = calculate_loyalty_breakdown_with_rfm if use_rfm else calculate_loyalty_breakdown
    return compute(customer, now=now, settings=settings).total


@dataclass
class LoyaltyService:
    """Loyalty scoring against the persistence collaborator."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_customer_loyalty_score(
        self, customer: CustomerSnapshot, use_rfm: bool = False, now: Optional[datetime] = None
    ) -> int:
        return calculate_loyalty_score(customer, use_rfm=use_rfm, now=now, settings=self.settings)

    def get_customer_loyalty_breakdown(
        self, customer_id: str, use_rfm: bool = False, now: Optional[datetime] = None
    ) -> LoyaltyBreakdown:
        customer = self._require_customer(customer_id)
        compute = calculate_loyalty_breakdown_with_rfm if use_rfm else calculate_loyalty_breakdown
        return compute(customer, now=now, settings=self.settings)

    def update_customer_loyalty_score(
        self, customer_id: str, now: Optional[datetime] = None
    ) -> int:
        """Recompute a customer's score, write it back and return it."""
        customer = self._require_customer(customer_id)
        score = calculate_loyalty_score(customer, now=now, settings=self.settings)
        self.repository.update_loyalty_score(customer_id, score)
        logger.info("Loyalty score updated", extra={"customer_id": customer_id, "score": score})
        return score

    def update_all_loyalty_scores(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> Tuple[int, List[str]]:
        """
        Recompute and write back every customer's score for an owner.

        Returns the number of scores written and the ids whose write failed;
        a failed write does not stop the remaining customers.
        """
        now = resolve_now(now)
        customers = self.repository.list_customers_with_sales(owner_id)
        scores = fan_out(
            lambda c: calculate_loyalty_score(c, now=now, settings=self.settings),
            customers,
            self.settings.max_workers,
        )

        updated = 0
        failed: List[str] = []
        for customer, score in zip(customers, scores):
            try:
                self.repository.update_loyalty_score(customer.id, score)
                updated += 1
            except Exception as exc:
                logger.warning(
                    "Loyalty write-back failed",
                    extra={"customer_id": customer.id, "error": str(exc)},
                )
                failed.append(customer.id)

        logger.info(
            "Loyalty scores refreshed",
            extra={"owner_id": owner_id, "updated": updated, "failed": len(failed)},
        )
        return updated, failed

    def _require_customer(self, customer_id: str) -> CustomerSnapshot:
        customer = self.repository.get_customer_with_sales(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer
