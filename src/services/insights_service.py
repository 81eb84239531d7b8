"""
Automated insight feed.

Runs the per-customer scorers and aggregate analytics for one owner and
turns noteworthy results into prioritized, actionable insights. Each
insight type is generated independently: a failure in one generator is
logged and the rest of the feed is still produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from config.settings import AnalyticsSettings, get_settings
from models.analytics import (
    ChurnRiskLevel,
    CustomerSegment,
    RFMSegment,
    ValueTier,
)
from models.insight import PRIORITY_ORDER, AnalyticsType, Insight, InsightPriority
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.churn_service import ChurnService
from services.clv_service import CLVService
from services.customer_insights_service import CustomerInsightsService
from services.forecast_service import ForecastService
from services.rfm_service import RFMService
from services.sales_analytics_service import SalesAnalyticsService
from services.segmentation_service import SegmentationService
from utils.dates import resolve_now
from utils.logging_config import get_logger

logger = get_logger(__name__)

SALES_SWING_PCT = 10
FORECAST_WARNING_RATIO = 0.8
FORECAST_INSIGHT_MONTHS = 3

Generator = Callable[[str, datetime], List[Insight]]


def sort_insights(insights: List[Insight]) -> List[Insight]:
    """HIGH before MEDIUM before LOW, otherwise in generation order."""
    return sorted(insights, key=lambda i: PRIORITY_ORDER[i.priority])


@dataclass
class InsightsService:
    """Builds and persists the automated insight feed for an owner."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()
        deps = {"repository": self.repository, "settings": self.settings}
        self.customer_insights = CustomerInsightsService(**deps)
        self.churn = ChurnService(**deps)
        self.sales = SalesAnalyticsService(**deps)
        self.forecast = ForecastService(**deps)
        self.segmentation = SegmentationService(**deps)
        self.clv = CLVService(**deps)
        self.rfm = RFMService(**deps)

    def _money(self, amount: float) -> str:
        return f"{self.settings.currency} {amount:,.0f}"

    def _generators(self) -> List[Generator]:
        return [
            self._top_customer_insights,
            self._churn_insights,
            self._sales_trend_insights,
            self._forecast_insights,
            self._segment_insights,
            self._best_seller_insights,
            self._clv_insights,
            self._rfm_insights,
        ]

    def generate_automated_insights(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> List[Insight]:
        now = resolve_now(now)
        insights: List[Insight] = []
        for generator in self._generators():
            try:
                insights.extend(generator(owner_id, now))
            except Exception:
                logger.exception(
                    "Insight generator failed",
                    extra={"owner_id": owner_id, "generator": generator.__name__},
                )

        insights = sort_insights(insights)
        logger.info(
            "Insights generated",
            extra={
                "owner_id": owner_id,
                "count": len(insights),
                "high_priority": sum(1 for i in insights if i.priority == InsightPriority.HIGH),
            },
        )
        return insights

    def save_insights(self, owner_id: str, insights: List[Insight]) -> List[str]:
        """Persist insights to the analytics log; failed writes are logged and skipped."""
        saved = []
        for insight in insights:
            try:
                saved.append(self.repository.save_insight(owner_id, insight))
            except Exception as exc:
                logger.warning(
                    "Insight save failed",
                    extra={"owner_id": owner_id, "title": insight.title, "error": str(exc)},
                )
        return saved

    def generate_and_save_insights(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> List[Insight]:
        insights = self.generate_automated_insights(owner_id, now)
        saved = self.save_insights(owner_id, insights)
        logger.info(
            "Insights saved",
            extra={"owner_id": owner_id, "generated": len(insights), "saved": len(saved)},
        )
        return insights

    # Generators

    def _top_customer_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        top = self.customer_insights.get_top_customers_insights(owner_id, now=now)
        if not top:
            return []
        leader = top[0]
        return [
            Insight(
                type=AnalyticsType.TOP_CUSTOMERS,
                title="Top Customer Performance",
                summary=(
                    f"{leader.customer_name} is your top customer with "
                    f"{self._money(leader.total_spent)} in total spending."
                ),
                priority=InsightPriority.HIGH,
                recommendations=[
                    "Consider creating a VIP program for top customers",
                    "Request testimonials from top customers",
                    "Offer exclusive products or early access",
                ],
                data=top,
                generated_at=now,
            )
        ]

    def _churn_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        at_risk = self.churn.get_high_churn_risk_customers(
            owner_id, ChurnRiskLevel.MEDIUM, now=now
        )
        if not at_risk:
            return []
        critical = [c for c in at_risk if c.analysis.risk_level == ChurnRiskLevel.CRITICAL]
        return [
            Insight(
                type=AnalyticsType.CUSTOMER_CHURN_RISK,
                title="Customer Churn Alert",
                summary=(
                    f"{len(at_risk)} customers are at risk of churning, including "
                    f"{len(critical)} with critical risk."
                ),
                priority=InsightPriority.HIGH if critical else InsightPriority.MEDIUM,
                recommendations=[
                    "Immediately contact critical risk customers",
                    "Launch win-back campaign with special offers",
                    "Survey at-risk customers to understand concerns",
                    "Review customer service quality",
                ],
                data=at_risk,
                generated_at=now,
            )
        ]

    def _sales_trend_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        trends = self.sales.get_sales_trends(owner_id, now=now)
        if len(trends) < 2:
            return []
        growth = trends[-1].growth_rate or 0.0

        if growth < -SALES_SWING_PCT:
            return [
                Insight(
                    type=AnalyticsType.SALES_TREND_MONTHLY,
                    title="Sales Decline Detected",
                    summary=(
                        f"Sales have declined by {abs(growth):.1f}% compared to the "
                        "previous period."
                    ),
                    priority=InsightPriority.HIGH,
                    recommendations=[
                        "Analyze reasons for sales decline",
                        "Review marketing campaigns effectiveness",
                        "Consider promotional offers to boost sales",
                        "Check for seasonal factors",
                    ],
                    data=trends,
                    generated_at=now,
                )
            ]
        if growth > SALES_SWING_PCT:
            return [
                Insight(
                    type=AnalyticsType.SALES_TREND_MONTHLY,
                    title="Strong Sales Growth",
                    summary=f"Sales have grown by {growth:.1f}% compared to the previous period.",
                    priority=InsightPriority.MEDIUM,
                    recommendations=[
                        "Capitalize on growth momentum",
                        "Increase inventory for high-demand products",
                        "Scale successful marketing strategies",
                        "Consider expanding product lines",
                    ],
                    data=trends,
                    generated_at=now,
                )
            ]
        return []

    def _forecast_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        forecast = self.forecast.forecast_revenue(
            owner_id,
            months_ahead=FORECAST_INSIGHT_MONTHS,
            historical_months=self.settings.forecast_history_months,
            now=now,
        )
        if not forecast:
            return []
        next_month = forecast[0].forecasted_revenue
        average = sum(f.forecasted_revenue for f in forecast) / len(forecast)
        if average <= 0 or next_month >= average * FORECAST_WARNING_RATIO:
            return []
        shortfall = (1 - next_month / average) * 100
        return [
            Insight(
                type=AnalyticsType.REVENUE_FORECAST,
                title="Revenue Forecast Warning",
                summary=f"Forecasted revenue for next month is {shortfall:.1f}% below average.",
                priority=InsightPriority.HIGH,
                recommendations=[
                    "Implement revenue-boosting strategies",
                    "Launch promotional campaigns",
                    "Focus on high-value customer segments",
                    "Review pricing strategy",
                ],
                data=forecast,
                generated_at=now,
            )
        ]

    def _segment_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        buckets = self.segmentation.segment_customers(owner_id, now=now)
        by_segment = {b.segment: b for b in buckets}
        insights = []

        at_risk = by_segment.get(CustomerSegment.AT_RISK)
        if at_risk and at_risk.count > 0:
            insights.append(
                Insight(
                    type=AnalyticsType.CUSTOMER_ACQUISITION,
                    title="Customer Segment Analysis",
                    summary=(
                        f"{at_risk.count} customers are in the AT_RISK segment, representing "
                        f"{self._money(at_risk.total_value)} in potential lost revenue."
                    ),
                    priority=InsightPriority.HIGH,
                    recommendations=[
                        "Launch targeted retention campaigns",
                        "Offer personalized discounts to at-risk customers",
                        "Improve customer engagement strategies",
                    ],
                    data=buckets,
                    generated_at=now,
                )
            )

        inactive = by_segment.get(CustomerSegment.INACTIVE)
        if inactive and inactive.count > 0:
            insights.append(
                Insight(
                    type=AnalyticsType.CUSTOMER_ACQUISITION,
                    title="Inactive Customers Detected",
                    summary=f"{inactive.count} customers have been inactive for 6+ months.",
                    priority=InsightPriority.MEDIUM,
                    recommendations=[
                        "Launch reactivation campaigns",
                        "Survey inactive customers for feedback",
                        'Offer "new customer" deals to win them back',
                    ],
                    data=buckets,
                    generated_at=now,
                )
            )
        return insights

    def _best_seller_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        products = self.sales.get_best_selling_products(owner_id, now=now)
        if not products:
            return []
        leader = products[0]
        return [
            Insight(
                type=AnalyticsType.BEST_SELLING_PRODUCTS,
                title="Product Performance",
                summary=(
                    f"{leader.product_name} is your best-selling product with "
                    f"{leader.total_quantity} units sold."
                ),
                priority=InsightPriority.MEDIUM,
                recommendations=[
                    "Ensure adequate inventory for top products",
                    "Consider bundling best sellers with slower products",
                    "Use best sellers in marketing campaigns",
                    "Analyze why these products are successful",
                ],
                data=products,
                generated_at=now,
            )
        ]

    def _clv_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        summary = self.clv.get_average_clv(owner_id, now=now)
        if summary.average_clv <= 0:
            return []
        high_value = summary.tier_counts.get(ValueTier.HIGH, 0)
        return [
            Insight(
                type=AnalyticsType.CUSTOMER_ACQUISITION,
                title="Customer Value Analysis",
                summary=(
                    f"Average customer lifetime value is {self._money(summary.average_clv)}. "
                    f"You have {high_value} high-value customers."
                ),
                priority=InsightPriority.MEDIUM,
                recommendations=[
                    "Focus retention efforts on high-value customers",
                    "Develop strategies to increase average CLV",
                    "Create tiered loyalty programs",
                ],
                data=summary,
                generated_at=now,
            )
        ]

    def _rfm_insights(self, owner_id: str, now: datetime) -> List[Insight]:
        analyses = self.rfm.get_all_customers_rfm(owner_id, now=now)
        lost = [a for a in analyses if a.rfm_score.segment == RFMSegment.LOST]
        champions = [a for a in analyses if a.rfm_score.segment == RFMSegment.CHAMPIONS]
        insights = []

        if lost:
            insights.append(
                Insight(
                    type=AnalyticsType.CUSTOMER_CHURN_RISK,
                    title="Lost Customers Identified",
                    summary=f'RFM analysis identified {len(lost)} customers in the "Lost" segment.',
                    priority=InsightPriority.MEDIUM,
                    recommendations=[
                        "Launch aggressive win-back campaigns",
                        "Survey to understand why they left",
                        "Consider removing from active marketing to save costs",
                    ],
                    data={"lost_customers": lost, "total": len(analyses)},
                    generated_at=now,
                )
            )
        if champions:
            insights.append(
                Insight(
                    type=AnalyticsType.TOP_CUSTOMERS,
                    title="Champion Customers",
                    summary=(
                        f'You have {len(champions)} "Champion" customers '
                        "(high recency, frequency, and monetary value)."
                    ),
                    priority=InsightPriority.HIGH,
                    recommendations=[
                        "Create exclusive VIP program for champions",
                        "Request referrals and testimonials",
                        "Offer early access to new products",
                    ],
                    data={"champions": champions, "total": len(analyses)},
                    generated_at=now,
                )
            )
        return insights
