"""
Pydantic model validation tests.

Ensures all models validate correctly and reject invalid data.
No AWS or database connection required.

Run with: pytest tests/unit/test_models.py -v
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add src to path to simulate Lambda environment
SRC_PATH = Path(__file__).parent.parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class TestCustomerSnapshot:
    """Test the customer read view."""

    def test_missing_totals_default_to_zero(self):
        """Null totals from the store should degrade to zero."""
        from models.customer import CustomerSnapshot

        customer = CustomerSnapshot(
            id="c1", name="Test", total_spent=None, total_visits=None, loyalty_score=None
        )
        assert customer.total_spent == 0
        assert customer.total_visits == 0
        assert customer.loyalty_score == 0

    def test_naive_dates_are_treated_as_utc(self):
        """Naive timestamps should become UTC-aware."""
        from models.customer import CustomerSnapshot

        customer = CustomerSnapshot(id="c1", last_visit=datetime(2025, 1, 1, 9, 0))
        assert customer.last_visit.tzinfo == timezone.utc

    def test_paid_sales_filters_payment_status(self):
        """Only PAID sales count as paid."""
        from models.customer import CustomerSnapshot, PaymentStatus, SaleRecord

        when = datetime(2025, 1, 1, tzinfo=timezone.utc)
        customer = CustomerSnapshot(
            id="c1",
            sales=[
                SaleRecord(total_amount=10, sale_date=when, payment_status=PaymentStatus.PAID),
                SaleRecord(total_amount=10, sale_date=when, payment_status=PaymentStatus.OVERDUE),
                SaleRecord(total_amount=10, sale_date=when, payment_status=PaymentStatus.PARTIAL),
            ],
        )
        assert len(customer.paid_sales) == 1

    def test_payment_issue_statuses(self):
        """OVERDUE and PENDING count as payment problems, PARTIAL does not."""
        from models.customer import PaymentStatus, SaleRecord

        when = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert SaleRecord(sale_date=when, payment_status=PaymentStatus.OVERDUE).has_payment_issue
        assert SaleRecord(sale_date=when, payment_status=PaymentStatus.PENDING).has_payment_issue
        assert not SaleRecord(sale_date=when, payment_status=PaymentStatus.PARTIAL).has_payment_issue

    def test_summary_drops_sales(self):
        from models.customer import CustomerSnapshot

        summary = CustomerSnapshot(id="c1", name="A", total_spent=5).summary()
        assert summary.id == "c1"
        assert not hasattr(summary, "sales")


class TestAnalyticsModels:
    """Bounds on analytics results."""

    def test_rfm_components_bounded(self):
        """R/F/M components must stay in 1..5."""
        from models.analytics import RFMScore, RFMSegment

        with pytest.raises(ValidationError):
            RFMScore(recency=0, frequency=1, monetary=1, rfm_score="011", segment=RFMSegment.LOST)

    def test_loyalty_total_bounded(self):
        from models.analytics import LoyaltyBreakdown

        with pytest.raises(ValidationError):
            LoyaltyBreakdown(spend=40, frequency=30, recency=20, payment=10, total=101)

    def test_forecast_lower_bound_non_negative(self):
        from models.analytics import ForecastConfidence, ForecastPeriod

        with pytest.raises(ValidationError):
            ForecastPeriod(
                period="2025-07",
                forecasted_revenue=10,
                confidence=ForecastConfidence.LOW,
                lower_bound=-1,
                upper_bound=20,
            )

    def test_clv_cannot_be_negative(self):
        from models.analytics import CustomerLifetimeValue, ValueTier

        with pytest.raises(ValidationError):
            CustomerLifetimeValue(
                customer_id="c1",
                customer_name="A",
                clv=-5,
                average_order_value=0,
                purchase_frequency=0,
                customer_lifespan=0,
                predicted_future_value=0,
                customer_value_tier=ValueTier.LOW,
            )


class TestInsight:
    """Test the insight feed model."""

    def test_insight_serializes_nested_models(self):
        """Insight data holding models should dump to plain JSON."""
        from models.analytics import ProductPerformance
        from models.insight import AnalyticsType, Insight, InsightPriority

        insight = Insight(
            type=AnalyticsType.BEST_SELLING_PRODUCTS,
            title="Product Performance",
            summary="Rice is your best-selling product with 10 units sold.",
            priority=InsightPriority.MEDIUM,
            data=[
                ProductPerformance(
                    product_id="p1",
                    product_name="Rice",
                    total_quantity=10,
                    total_revenue=100.0,
                    average_price=10.0,
                )
            ],
        )
        dumped = insight.model_dump(mode="json")
        assert dumped["data"][0]["product_name"] == "Rice"
        assert dumped["actionable"] is True
        json.dumps(dumped)


class TestApiResponse:
    """Test ApiResponse model."""

    def test_api_response_defaults(self):
        from models.response import ApiResponse

        response = ApiResponse(message="ok")
        assert response.data is None
        assert response.count is None
