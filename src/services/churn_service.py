"""
Churn risk assessment.

Four additive, individually capped contributions: recency (40), visit
frequency decline (30), spending decline (20) and payment issues (10).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from config.settings import AnalyticsSettings, get_settings
from models.analytics import (
    RISK_LEVEL_ORDER,
    ChurnRiskAnalysis,
    ChurnRiskLevel,
    CustomerChurnRisk,
)
from models.customer import CustomerSnapshot
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.metrics import moving_average
from utils.concurrency import fan_out
from utils.dates import age_days, days_between, resolve_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)

NO_VISIT_CHURN_DAYS = 60
CHURN_GRACE_DAYS = 30


class _Assessment:
    """Accumulates score, factors and recommendations while scoring."""

    def __init__(self) -> None:
        self.score = 0
        self.factors: List[str] = []
        self.recommendations: List[str] = []
        self.contributions = {}

    def add(
        self,
        name: str,
        points: int,
        factor: str,
        recommendation: Optional[str] = None,
    ) -> None:
        self.score += points
        self.contributions[name] = points
        self.factors.append(factor)
        if recommendation:
            self.recommendations.append(recommendation)


def _assess_recency(assessment: _Assessment, last_visit_days: Optional[int]) -> None:
    if last_visit_days is None:
        assessment.add(
            "recency", 40, "No recorded visits", "Reach out to welcome the customer back"
        )
    elif last_visit_days > 180:
        assessment.add(
            "recency",
            40,
            f"No visit in {last_visit_days} days (6+ months)",
            "Urgent: Contact customer with special offer",
        )
    elif last_visit_days > 90:
        assessment.add(
            "recency",
            30,
            f"No visit in {last_visit_days} days (3+ months)",
            "Send personalized message or discount",
        )
    elif last_visit_days > 60:
        assessment.add(
            "recency",
            20,
            f"No visit in {last_visit_days} days (2+ months)",
            "Consider sending a reminder or promotion",
        )
    elif last_visit_days > 30:
        assessment.add("recency", 10, f"No visit in {last_visit_days} days (1+ month)")


def _assess_frequency(
    assessment: _Assessment, customer: CustomerSnapshot, now: datetime, window: int
) -> None:
    if customer.first_visit is None or customer.last_visit is None:
        return
    active_days = max(1, days_between(customer.first_visit, customer.last_visit))
    average_per_month = customer.total_visits / active_days * 30
    if average_per_month <= 0:
        return

    recent = sum(1 for s in customer.sales if age_days(s.sale_date, now) <= window)
    recent_per_month = recent / window * 30

    if recent_per_month < average_per_month * 0.5:
        assessment.add(
            "frequency",
            30,
            "Significant decline in visit frequency",
            "Investigate why customer visits have decreased",
        )
    elif recent_per_month < average_per_month * 0.7:
        assessment.add("frequency", 15, "Moderate decline in visit frequency")


def _assess_spending(
    assessment: _Assessment, customer: CustomerSnapshot, now: datetime, window: int
) -> None:
    if len(customer.sales) < 3:
        return
    recent = [s.total_amount for s in customer.sales if age_days(s.sale_date, now) <= window]
    older = [s.total_amount for s in customer.sales if age_days(s.sale_date, now) > window]
    if not recent or not older:
        return

    recent_avg = moving_average(recent)
    older_avg = moving_average(older)
    if older_avg <= 0:
        return
    if recent_avg < older_avg * 0.5:
        assessment.add(
            "spending",
            20,
            "Significant decline in spending",
            "Offer loyalty rewards or bulk purchase discounts",
        )
    elif recent_avg < older_avg * 0.7:
        assessment.add("spending", 10, "Moderate decline in spending")


def _assess_payments(assessment: _Assessment, customer: CustomerSnapshot) -> None:
    issues = sum(1 for s in customer.sales if s.has_payment_issue)
    if issues > 0:
        assessment.add(
            "payment",
            min(10, issues * 2),
            f"{issues} overdue or pending payment(s)",
            "Follow up on outstanding payments",
        )


def risk_level_for(score: int) -> ChurnRiskLevel:
    if score >= 70:
        return ChurnRiskLevel.CRITICAL
    if score >= 50:
        return ChurnRiskLevel.HIGH
    if score >= 30:
        return ChurnRiskLevel.MEDIUM
    return ChurnRiskLevel.LOW


def calculate_churn_risk(
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> ChurnRiskAnalysis:
    """Assess how likely a customer is to stop buying."""
    now = resolve_now(now)
    window = (settings or get_settings()).recent_window_days
    last_visit_days = days_between(customer.last_visit, now)

    assessment = _Assessment()
    _assess_recency(assessment, last_visit_days)
    _assess_frequency(assessment, customer, now, window)
    _assess_spending(assessment, customer, now, window)
    _assess_payments(assessment, customer)

    score = min(100, max(0, assessment.score))
    level = risk_level_for(score)

    predicted_churn_date = None
    if level in (ChurnRiskLevel.CRITICAL, ChurnRiskLevel.HIGH):
        days_until_churn = (
            last_visit_days + CHURN_GRACE_DAYS if last_visit_days else NO_VISIT_CHURN_DAYS
        )
        predicted_churn_date = now + timedelta(days=days_until_churn)

    return ChurnRiskAnalysis(
        risk_level=level,
        risk_score=score,
        factors=assessment.factors,
        contributions=assessment.contributions,
        last_visit_days=last_visit_days,
        predicted_churn_date=predicted_churn_date,
        recommendations=assessment.recommendations,
    )


def meets_risk_level(level: ChurnRiskLevel, minimum: ChurnRiskLevel) -> bool:
    """True when ``level`` is at least as severe as ``minimum``."""
    return RISK_LEVEL_ORDER.index(level) <= RISK_LEVEL_ORDER.index(minimum)


@dataclass
class ChurnService:
    """Churn assessment against the persistence collaborator."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()

    def get_churn_risk(
        self, customer: CustomerSnapshot, now: Optional[datetime] = None
    ) -> ChurnRiskAnalysis:
        return calculate_churn_risk(customer, now=now, settings=self.settings)

    def get_customer_churn_risk(
        self, customer_id: str, now: Optional[datetime] = None
    ) -> ChurnRiskAnalysis:
        customer = self.repository.get_customer_with_sales(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return calculate_churn_risk(customer, now=now, settings=self.settings)

    def get_high_churn_risk_customers(
        self,
        owner_id: str,
        min_level: ChurnRiskLevel = ChurnRiskLevel.MEDIUM,
        now: Optional[datetime] = None,
    ) -> List[CustomerChurnRisk]:
        """Customers whose risk level is ``min_level`` or more severe."""
        now = resolve_now(now)
        customers = self.repository.list_customers_with_sales(owner_id)
        analyses = fan_out(
            lambda c: calculate_churn_risk(c, now=now, settings=self.settings),
            customers,
            self.settings.max_workers,
        )
        at_risk = [
            CustomerChurnRisk(customer=customer.summary(), analysis=analysis)
            for customer, analysis in zip(customers, analyses)
            if meets_risk_level(analysis.risk_level, min_level)
        ]
        logger.info(
            "Churn risk scan complete",
            extra={
                "owner_id": owner_id,
                "customers": len(customers),
                "at_risk": len(at_risk),
                "min_level": min_level.value,
            },
        )
        return at_risk
