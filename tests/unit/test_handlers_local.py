"""
Local handler tests using mocks.

These tests validate handler logic without connecting to PostgreSQL or AWS.
Services are swapped for mocks through each handler's lazy-load cache.

Run with: pytest tests/unit/test_handlers_local.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from models.analytics import (
    ChurnRiskLevel,
    CLVSummary,
    CustomerSegment,
    ForecastConfidence,
    ForecastPeriod,
    LoyaltyBreakdown,
    SegmentBucket,
    ValueTier,
)
from models.insight import (
    AnalyticsType,
    BatchAnalyticsResult,
    BatchRunSummary,
    Insight,
    InsightPriority,
)
from utils.error_handling import NotFoundError


def _event(method="GET", path="/", owner_id="owner-1", query=None, path_params=None):
    event = {
        "requestContext": {
            "http": {"method": method, "path": path},
            "authorizer": {"jwt": {"claims": {"sub": owner_id}}} if owner_id else {},
        },
        "queryStringParameters": query,
    }
    if path_params:
        event["pathParameters"] = path_params
    return event


def _body(resp):
    return json.loads(resp["body"])


@pytest.fixture
def owner_repository():
    repository = MagicMock()
    repository.owner_exists.return_value = True
    return repository


class TestHealthCheckHandler:
    """Test the health check endpoint."""

    def test_health_check_returns_200(self):
        from handlers.health_check import lambda_handler

        result = lambda_handler({}, None)

        assert result["statusCode"] == 200
        body = json.loads(result["body"])
        assert body["status"] == "ok"
        assert "timestamp" in body

    def test_health_check_includes_environment(self):
        from handlers.health_check import lambda_handler

        with patch.dict("os.environ", {"ENVIRONMENT": "test"}):
            body = json.loads(lambda_handler({}, None)["body"])
        assert body["environment"] == "test"


class TestCustomerAnalyticsHandlers:
    """Per-customer routes under /analytics/customers/{id}."""

    def test_loyalty_breakdown(self):
        from handlers import customer_analytics

        loyalty = MagicMock()
        loyalty.get_customer_loyalty_breakdown.return_value = LoyaltyBreakdown(
            spend=20, frequency=15, recency=20, payment=10, total=65
        )
        with patch.dict(customer_analytics._services, {"loyalty": loyalty}):
            resp = customer_analytics.loyalty_handler(
                _event(query={"use_rfm": "true"}, path_params={"id": "cust-1"}), None
            )

        assert resp["statusCode"] == 200
        body = _body(resp)
        assert body["data"]["total"] == 65
        assert body["correlation_id"]
        loyalty.get_customer_loyalty_breakdown.assert_called_once_with("cust-1", use_rfm=True)

    def test_loyalty_update(self):
        from handlers import customer_analytics

        loyalty = MagicMock()
        loyalty.update_customer_loyalty_score.return_value = 72
        with patch.dict(customer_analytics._services, {"loyalty": loyalty}):
            resp = customer_analytics.loyalty_handler(
                _event(method="POST", path_params={"id": "cust-1"}), None
            )

        assert _body(resp)["data"] == {"customer_id": "cust-1", "loyalty_score": 72}

    def test_missing_customer_is_404(self):
        from handlers import customer_analytics

        churn = MagicMock()
        churn.get_customer_churn_risk.side_effect = NotFoundError("Customer cust-9 not found")
        with patch.dict(customer_analytics._services, {"churn": churn}):
            resp = customer_analytics.churn_risk_handler(
                _event(path_params={"id": "cust-9"}), None
            )

        assert resp["statusCode"] == 404
        assert _body(resp)["message"] == "Customer cust-9 not found"

    def test_missing_path_param_is_422(self):
        from handlers import customer_analytics

        resp = customer_analytics.rfm_handler(_event(), None)

        assert resp["statusCode"] == 422
        assert "id is required" in _body(resp)["message"]

    def test_negative_acquisition_cost_is_422(self):
        from handlers import customer_analytics

        clv = MagicMock()
        with patch.dict(customer_analytics._services, {"clv": clv}):
            resp = customer_analytics.clv_handler(
                _event(query={"acquisition_cost": "-5"}, path_params={"id": "cust-1"}), None
            )

        assert resp["statusCode"] == 422
        clv.get_customer_clv.assert_not_called()

    def test_unexpected_error_is_500(self):
        from handlers import customer_analytics

        insights = MagicMock()
        insights.get_customer_insights.side_effect = RuntimeError("connection refused")
        with patch.dict(customer_analytics._services, {"insights": insights}):
            resp = customer_analytics.insights_handler(
                _event(path_params={"id": "cust-1"}), None
            )

        assert resp["statusCode"] == 500
        assert _body(resp)["error"] == "connection refused"


class TestOwnerAnalyticsHandlers:
    """Owner-level routes under /analytics."""

    def test_unknown_owner_is_404(self):
        from handlers import owner_analytics

        repository = MagicMock()
        repository.owner_exists.return_value = False
        with patch.dict(owner_analytics._services, {"repository": repository}):
            resp = owner_analytics.rfm_handler(_event(owner_id="ghost"), None)

        assert resp["statusCode"] == 404

    def test_missing_owner_is_422(self):
        from handlers import owner_analytics

        resp = owner_analytics.rfm_handler(_event(owner_id=None), None)

        assert resp["statusCode"] == 422

    def test_owner_id_query_fallback(self, owner_repository):
        from handlers import owner_analytics

        rfm = MagicMock()
        rfm.get_all_customers_rfm.return_value = []
        services = {"repository": owner_repository, "rfm": rfm}
        with patch.dict(owner_analytics._services, services):
            resp = owner_analytics.rfm_handler(
                _event(owner_id=None, query={"owner_id": "owner-7"}), None
            )

        assert resp["statusCode"] == 200
        assert _body(resp)["count"] == 0
        rfm.get_all_customers_rfm.assert_called_once_with("owner-7")

    def test_churn_min_level(self, owner_repository):
        from handlers import owner_analytics

        churn = MagicMock()
        churn.get_high_churn_risk_customers.return_value = []
        services = {"repository": owner_repository, "churn": churn}
        with patch.dict(owner_analytics._services, services):
            owner_analytics.churn_risk_handler(_event(query={"min_level": "high"}), None)
            bad = owner_analytics.churn_risk_handler(_event(query={"min_level": "dire"}), None)

        churn.get_high_churn_risk_customers.assert_called_once_with("owner-1", ChurnRiskLevel.HIGH)
        assert bad["statusCode"] == 422

    def test_clv_summary(self, owner_repository):
        from handlers import owner_analytics

        clv = MagicMock()
        clv.get_average_clv.return_value = CLVSummary(
            average_clv=1000, total_clv=2000, tier_counts={ValueTier.HIGH: 1, ValueTier.LOW: 1}
        )
        services = {"repository": owner_repository, "clv": clv}
        with patch.dict(owner_analytics._services, services):
            resp = owner_analytics.clv_handler(_event(), None)

        assert _body(resp)["data"]["tier_counts"] == {"HIGH": 1, "LOW": 1}

    def test_segments(self, owner_repository):
        from handlers import owner_analytics

        segmentation = MagicMock()
        segmentation.segment_customers.return_value = [
            SegmentBucket(segment=CustomerSegment.VIP, count=1, total_value=500.0)
        ]
        services = {"repository": owner_repository, "segmentation": segmentation}
        with patch.dict(owner_analytics._services, services):
            resp = owner_analytics.segments_handler(_event(), None)

        body = _body(resp)
        assert body["count"] == 1
        assert body["data"][0]["segment"] == "VIP"

    def test_forecast_params(self, owner_repository):
        from handlers import owner_analytics

        forecast = MagicMock()
        forecast.forecast_revenue.return_value = [
            ForecastPeriod(
                period="2025-07",
                forecasted_revenue=0,
                confidence=ForecastConfidence.LOW,
                lower_bound=0,
                upper_bound=0,
                factors=["Insufficient historical data"],
            )
        ]
        services = {"repository": owner_repository, "forecast": forecast}
        with patch.dict(owner_analytics._services, services):
            resp = owner_analytics.forecast_handler(
                _event(query={"months_ahead": "3", "historical_months": "24"}), None
            )
            too_far = owner_analytics.forecast_handler(_event(query={"months_ahead": "36"}), None)

        assert _body(resp)["data"][0]["period"] == "2025-07"
        forecast.forecast_revenue.assert_called_once_with("owner-1", 3, 24)
        assert too_far["statusCode"] == 422

    def test_payment_methods_bad_date(self, owner_repository):
        from handlers import owner_analytics

        sales = MagicMock()
        services = {"repository": owner_repository, "sales": sales}
        with patch.dict(owner_analytics._services, services):
            resp = owner_analytics.payment_methods_handler(
                _event(query={"start_date": "last tuesday"}), None
            )

        assert resp["statusCode"] == 422
        sales.get_payment_method_analysis.assert_not_called()


class TestInsightsHandler:
    """Automated insight feed route."""

    def _service(self, owner_exists=True):
        service = MagicMock()
        service.repository.owner_exists.return_value = owner_exists
        insight = Insight(
            type=AnalyticsType.TOP_CUSTOMERS,
            title="Champion Customers",
            summary="You have 1 champion.",
            priority=InsightPriority.HIGH,
        )
        service.generate_automated_insights.return_value = [insight]
        service.generate_and_save_insights.return_value = [insight]
        return service

    def test_get_generates_without_saving(self):
        from handlers import insights

        service = self._service()
        with patch.object(insights, "_insights_service", service):
            resp = insights.lambda_handler(_event(path="/analytics/insights"), None)

        body = _body(resp)
        assert body["message"] == "Insights generated"
        assert body["data"][0]["priority"] == "HIGH"
        service.generate_and_save_insights.assert_not_called()

    def test_post_saves(self):
        from handlers import insights

        service = self._service()
        with patch.object(insights, "_insights_service", service):
            resp = insights.lambda_handler(_event(method="POST"), None)

        assert _body(resp)["message"] == "Insights generated and saved"
        service.generate_and_save_insights.assert_called_once_with("owner-1")

    def test_unknown_owner(self):
        from handlers import insights

        with patch.object(insights, "_insights_service", self._service(owner_exists=False)):
            resp = insights.lambda_handler(_event(), None)

        assert resp["statusCode"] == 404


class TestBatchHandlers:
    """Manual and scheduled batch runs."""

    def test_single_owner_with_errors(self):
        from handlers import batch_analytics

        service = MagicMock()
        service.run_batch_analytics.return_value = BatchAnalyticsResult(
            owner_id="owner-1", success=False, errors=["Failed to segment customers: boom"]
        )
        with patch.object(batch_analytics, "_batch_service", service):
            resp = batch_analytics.lambda_handler(_event(method="POST"), None)

        body = _body(resp)
        assert body["message"] == "Batch analytics completed with errors"
        assert body["data"]["errors"] == ["Failed to segment customers: boom"]

    def test_unknown_owner_is_404(self):
        from handlers import batch_analytics

        service = MagicMock()
        service.repository.owner_exists.return_value = False
        with patch.object(batch_analytics, "_batch_service", service):
            resp = batch_analytics.lambda_handler(_event(method="POST", owner_id="ghost"), None)

        assert resp["statusCode"] == 404
        service.run_batch_analytics.assert_not_called()

    def test_all_owners(self):
        from handlers import batch_analytics

        service = MagicMock()
        service.run_batch_analytics_for_all.return_value = BatchRunSummary(
            total_businesses=2, successful=2, failed=0
        )
        with patch.object(batch_analytics, "_batch_service", service):
            resp = batch_analytics.lambda_handler(_event(method="POST", query={"all": "true"}), None)

        assert _body(resp)["data"]["total_businesses"] == 2
        service.run_batch_analytics.assert_not_called()

    def test_scheduled_handler_returns_summary(self):
        from handlers import batch_analytics

        service = MagicMock()
        service.run_batch_analytics_for_all.return_value = BatchRunSummary(
            total_businesses=1, successful=0, failed=1
        )
        with patch.object(batch_analytics, "_batch_service", service):
            result = batch_analytics.scheduled_handler(
                {"source": "aws.events", "resources": ["arn:aws:events:rule/nightly"]}, None
            )

        assert result == {"total_businesses": 1, "successful": 0, "failed": 1, "results": []}
