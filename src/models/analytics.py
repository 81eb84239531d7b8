"""Pydantic result types produced by the customer intelligence engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.customer import CustomerSummary


class LoyaltyBreakdown(BaseModel):
    """Loyalty score with the contribution of each weighted factor."""

    spend: float = Field(ge=0, le=40)
    frequency: float = Field(ge=0, le=30)
    recency: int = Field(ge=0, le=20)
    payment: float = Field(ge=0, le=10)
    rfm_bonus: float = 0.0
    total: int = Field(ge=0, le=100)


class ChurnRiskLevel(str, Enum):
    """Churn risk buckets, ordered most severe first in RISK_LEVEL_ORDER."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


RISK_LEVEL_ORDER = (
    ChurnRiskLevel.CRITICAL,
    ChurnRiskLevel.HIGH,
    ChurnRiskLevel.MEDIUM,
    ChurnRiskLevel.LOW,
)


class ChurnRiskAnalysis(BaseModel):
    """Additive churn risk assessment for one customer."""

    risk_level: ChurnRiskLevel
    risk_score: int = Field(ge=0, le=100)
    factors: List[str] = Field(default_factory=list)
    contributions: Dict[str, int] = Field(default_factory=dict)
    last_visit_days: Optional[int] = None
    predicted_churn_date: Optional[datetime] = None
    recommendations: List[str] = Field(default_factory=list)


class CustomerChurnRisk(BaseModel):
    """A customer paired with its churn analysis."""

    customer: CustomerSummary
    analysis: ChurnRiskAnalysis


class RFMSegment(str, Enum):
    """Named marketing segments derived from the R/F/M triple."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"
    NEW_CUSTOMERS = "New Customers"
    PROMISING = "Promising"
    NEED_ATTENTION = "Need Attention"
    ABOUT_TO_SLEEP = "About to Sleep"
    AT_RISK = "At Risk"
    CANNOT_LOSE_THEM = "Cannot Lose Them"
    HIBERNATING = "Hibernating"
    LOST = "Lost"
    REGULAR = "Regular"


class RFMScore(BaseModel):
    """Recency, frequency and monetary quintile scores."""

    recency: int = Field(ge=1, le=5)
    frequency: int = Field(ge=1, le=5)
    monetary: int = Field(ge=1, le=5)
    rfm_score: str
    segment: RFMSegment


class RFMAnalysis(BaseModel):
    """RFM score with segment recommendations for one customer."""

    customer_id: str
    customer_name: str
    rfm_score: RFMScore
    recommendations: List[str] = Field(default_factory=list)


class ValueTier(str, Enum):
    """CLV tiers."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class CustomerLifetimeValue(BaseModel):
    """Projected lifetime value of one customer."""

    customer_id: str
    customer_name: str
    clv: float = Field(ge=0)
    average_order_value: float
    purchase_frequency: float
    customer_lifespan: float
    predicted_future_value: float = Field(ge=0)
    customer_value_tier: ValueTier
    recommendations: List[str] = Field(default_factory=list)


class CLVSummary(BaseModel):
    """CLV aggregated over an owner's customer base."""

    average_clv: float
    total_clv: float
    tier_counts: Dict[ValueTier, int]


class CustomerSegment(str, Enum):
    """Behavioral segments, listed in reporting priority order."""

    VIP = "VIP"
    LOYAL = "LOYAL"
    REGULAR = "REGULAR"
    NEW = "NEW"
    AT_RISK = "AT_RISK"
    INACTIVE = "INACTIVE"


class SegmentMember(BaseModel):
    """Customer listed inside a segment bucket."""

    id: str
    name: str
    total_spent: float
    loyalty_score: int


class SegmentBucket(BaseModel):
    """One behavioral segment with its population and value."""

    segment: CustomerSegment
    count: int = 0
    total_value: float = 0.0
    average_value: float = 0.0
    customers: List[SegmentMember] = Field(default_factory=list)


class SpendThresholds(BaseModel):
    """Population-relative spend cutoffs."""

    top_10: float = 0.0
    top_25: float = 0.0


class ForecastConfidence(str, Enum):
    """Confidence tier of a forecast period."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ForecastSignals(BaseModel):
    """Independent estimates computed over the revenue history."""

    short_term_average: float
    long_term_average: float
    trend: float
    exponential_smoothing: float
    linear_forecast: float
    variance: float
    seasonal_factors: Dict[int, float] = Field(default_factory=dict)


class ForecastPeriod(BaseModel):
    """Forecast for one future calendar month."""

    period: str
    forecasted_revenue: int
    confidence: ForecastConfidence
    lower_bound: int = Field(ge=0)
    upper_bound: int
    factors: List[str] = Field(default_factory=list)


class SalesTrendPeriod(BaseModel):
    """Completed-sales totals for one calendar month."""

    period: str
    total_revenue: float
    number_of_orders: int
    average_order_value: float
    growth_rate: Optional[float] = None


class PaymentMethodShare(BaseModel):
    """Share of completed revenue by payment method."""

    method: str
    count: int
    total_amount: float
    percentage: float


class ProductPerformance(BaseModel):
    """Best-seller row aggregated from sale line items."""

    product_id: str
    product_name: str
    total_quantity: int
    total_revenue: float
    average_price: float


class GrowthTrend(str, Enum):
    """Direction of a customer's recent spending."""

    INCREASING = "INCREASING"
    STABLE = "STABLE"
    DECREASING = "DECREASING"


class ProductQuantity(BaseModel):
    """Product and quantity a customer bought."""

    product_name: str
    quantity: int


class CustomerInsight(BaseModel):
    """360-degree analytical view of one customer."""

    customer_id: str
    customer_name: str
    loyalty_score: int = Field(ge=0, le=100)
    churn_risk: ChurnRiskAnalysis
    segment: CustomerSegment
    total_spent: float
    total_visits: int
    average_order_value: float
    last_visit_date: Optional[datetime] = None
    days_since_last_visit: Optional[int] = None
    preferred_payment_method: Optional[str] = None
    top_products: List[ProductQuantity] = Field(default_factory=list)
    growth_trend: GrowthTrend = GrowthTrend.STABLE
