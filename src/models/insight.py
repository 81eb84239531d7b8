"""Insight feed and batch run models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, Field


class AnalyticsType(str, Enum):
    """Category under which an insight is logged."""

    TOP_CUSTOMERS = "TOP_CUSTOMERS"
    SALES_TREND_MONTHLY = "SALES_TREND_MONTHLY"
    CUSTOMER_CHURN_RISK = "CUSTOMER_CHURN_RISK"
    REVENUE_FORECAST = "REVENUE_FORECAST"
    BEST_SELLING_PRODUCTS = "BEST_SELLING_PRODUCTS"
    CUSTOMER_ACQUISITION = "CUSTOMER_ACQUISITION"


class InsightPriority(str, Enum):
    """Priority of a generated insight."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


PRIORITY_ORDER = {
    InsightPriority.HIGH: 0,
    InsightPriority.MEDIUM: 1,
    InsightPriority.LOW: 2,
}


class Insight(BaseModel):
    """Actionable finding produced by the insight synthesizer."""

    type: AnalyticsType
    title: str
    summary: str
    priority: InsightPriority
    actionable: bool = True
    recommendations: List[str] = Field(default_factory=list)
    data: Any = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BatchAnalyticsResult(BaseModel):
    """Outcome of the batch run for one owner."""

    owner_id: str
    success: bool
    tasks_completed: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0


class BatchRunSummary(BaseModel):
    """Outcome of the batch run across all active owners."""

    total_businesses: int
    successful: int
    failed: int
    results: List[BatchAnalyticsResult] = Field(default_factory=list)
