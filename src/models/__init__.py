"""Pydantic models for snapshots, analytics results and the insight feed."""

from models.analytics import (  # noqa: F401
    RISK_LEVEL_ORDER,
    ChurnRiskAnalysis,
    ChurnRiskLevel,
    CLVSummary,
    CustomerChurnRisk,
    CustomerInsight,
    CustomerLifetimeValue,
    CustomerSegment,
    ForecastConfidence,
    ForecastPeriod,
    ForecastSignals,
    GrowthTrend,
    LoyaltyBreakdown,
    PaymentMethodShare,
    ProductPerformance,
    ProductQuantity,
    RFMAnalysis,
    RFMScore,
    RFMSegment,
    SalesTrendPeriod,
    SegmentBucket,
    SegmentMember,
    SpendThresholds,
    ValueTier,
)
from models.customer import (  # noqa: F401
    PAYMENT_ISSUE_STATUSES,
    CustomerSnapshot,
    CustomerSummary,
    PaymentStatus,
    SaleItem,
    SaleRecord,
    SaleStatus,
)
from models.insight import (  # noqa: F401
    PRIORITY_ORDER,
    AnalyticsType,
    BatchAnalyticsResult,
    BatchRunSummary,
    Insight,
    InsightPriority,
)
from models.response import ApiResponse  # noqa: F401
