"""
Owner-level analytics handlers for /analytics/... collection routes.

The owner comes from the JWT subject (or ``owner_id`` for internal callers)
and must exist; services return empty results for owners without customers.
"""

from typing import Dict, Optional

from models.analytics import ChurnRiskLevel, CustomerSegment
from utils.error_handling import NotFoundError
from utils.http import api_handler, ok, owner_id_from_event, query_params
from utils.logging_config import get_logger
from utils.validators import parse_datetime, parse_enum, parse_int

logger = get_logger(__name__)

# Lazy-loaded services to avoid import-time DB connections
_services: Dict[str, object] = {}


def _service(name: str):
    """Lazy-load a service (or the repository) by name."""
    if name not in _services:
        if name == "repository":
            from repositories.postgres_repo import get_repository
            _services[name] = get_repository()
        elif name == "churn":
            from services.churn_service import ChurnService
            _services[name] = ChurnService()
        elif name == "rfm":
            from services.rfm_service import RFMService
            _services[name] = RFMService()
        elif name == "clv":
            from services.clv_service import CLVService
            _services[name] = CLVService()
        elif name == "segmentation":
            from services.segmentation_service import SegmentationService
            _services[name] = SegmentationService()
        elif name == "forecast":
            from services.forecast_service import ForecastService
            _services[name] = ForecastService()
        elif name == "sales":
            from services.sales_analytics_service import SalesAnalyticsService
            _services[name] = SalesAnalyticsService()
        elif name == "customer_insights":
            from services.customer_insights_service import CustomerInsightsService
            _services[name] = CustomerInsightsService()
        else:
            raise KeyError(name)
    return _services[name]


def _require_owner(event) -> str:
    owner_id = owner_id_from_event(event)
    if not _service("repository").owner_exists(owner_id):
        raise NotFoundError(f"Owner {owner_id} not found")
    return owner_id


@api_handler("Churn risk scan")
def churn_risk_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    min_level = parse_enum(
        query_params(event).get("min_level"), "min_level", ChurnRiskLevel, ChurnRiskLevel.MEDIUM
    )
    customers = _service("churn").get_high_churn_risk_customers(owner_id, min_level)
    return ok("At-risk customers retrieved", customers, correlation_id)


@api_handler("RFM analysis")
def rfm_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    analyses = _service("rfm").get_all_customers_rfm(owner_id)
    return ok("RFM analysis complete", analyses, correlation_id)


@api_handler("CLV estimation")
def clv_handler(event, context, correlation_id: Optional[str] = None):
    """Summary by default; ``detail=true`` returns every customer's CLV."""
    owner_id = _require_owner(event)
    if query_params(event).get("detail", "").lower() == "true":
        values = _service("clv").get_all_customers_clv(owner_id)
        return ok("Customer lifetime values calculated", values, correlation_id)
    summary = _service("clv").get_average_clv(owner_id)
    return ok("Average CLV calculated", summary, correlation_id)


@api_handler("Segmentation")
def segments_handler(event, context, correlation_id: Optional[str] = None):
    """All non-empty segments, or the members of one ``segment``."""
    owner_id = _require_owner(event)
    segment = parse_enum(query_params(event).get("segment"), "segment", CustomerSegment)
    if segment is not None:
        members = _service("segmentation").get_customers_by_segment(owner_id, segment)
        summaries = [c.summary() for c in members]
        return ok(f"{segment.value} customers retrieved", summaries, correlation_id)
    buckets = _service("segmentation").segment_customers(owner_id)
    return ok("Customers segmented", buckets, correlation_id)


@api_handler("Revenue forecast")
def forecast_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    params = query_params(event)
    months_ahead = parse_int(params.get("months_ahead"), "months_ahead", 6, maximum=24)
    historical_months = parse_int(
        params.get("historical_months"), "historical_months", 12, minimum=1, maximum=60
    )
    forecast = _service("forecast").forecast_revenue(owner_id, months_ahead, historical_months)
    logger.info(
        "Forecast served",
        extra={
            "correlation_id": correlation_id,
            "owner_id": owner_id,
            "months_ahead": months_ahead,
        },
    )
    return ok("Revenue forecast generated", forecast, correlation_id)


@api_handler("Sales trends")
def sales_trends_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    months = parse_int(query_params(event).get("months"), "months", 12)
    trends = _service("sales").get_sales_trends(owner_id, months)
    return ok("Sales trends retrieved", trends, correlation_id)


@api_handler("Payment method analysis")
def payment_methods_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    params = query_params(event)
    analysis = _service("sales").get_payment_method_analysis(
        owner_id,
        parse_datetime(params.get("start_date"), "start_date"),
        parse_datetime(params.get("end_date"), "end_date"),
    )
    return ok("Payment methods analyzed", analysis, correlation_id)


@api_handler("Best sellers")
def best_products_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    params = query_params(event)
    products = _service("sales").get_best_selling_products(
        owner_id,
        parse_int(params.get("limit"), "limit", 10, maximum=100),
        parse_datetime(params.get("start_date"), "start_date"),
        parse_datetime(params.get("end_date"), "end_date"),
    )
    return ok("Best-selling products retrieved", products, correlation_id)


@api_handler("Top customers")
def top_customers_handler(event, context, correlation_id: Optional[str] = None):
    owner_id = _require_owner(event)
    limit = parse_int(query_params(event).get("limit"), "limit", 10, maximum=100)
    insights = _service("customer_insights").get_top_customers_insights(owner_id, limit)
    return ok("Top customers retrieved", insights, correlation_id)
