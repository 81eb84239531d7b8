"""
Per-customer analytics handlers for /analytics/customers/{id}/...

Each handler resolves the customer id from the path and delegates to the
matching service; NotFoundError surfaces as a 404.
"""

from typing import Dict, Optional

from utils.http import api_handler, ok, path_param, query_params
from utils.logging_config import get_logger
from utils.validators import parse_bool, parse_float

logger = get_logger(__name__)

# Lazy-loaded services to avoid import-time DB connections
_services: Dict[str, object] = {}


def _service(name: str):
    """Lazy-load a service by name."""
    if name not in _services:
        if name == "loyalty":
            from services.loyalty_service import LoyaltyService
            _services[name] = LoyaltyService()
        elif name == "churn":
            from services.churn_service import ChurnService
            _services[name] = ChurnService()
        elif name == "rfm":
            from services.rfm_service import RFMService
            _services[name] = RFMService()
        elif name == "clv":
            from services.clv_service import CLVService
            _services[name] = CLVService()
        elif name == "insights":
            from services.customer_insights_service import CustomerInsightsService
            _services[name] = CustomerInsightsService()
        else:
            raise KeyError(name)
    return _services[name]


@api_handler("Loyalty scoring")
def loyalty_handler(event, context, correlation_id: Optional[str] = None):
    """GET returns the score breakdown; POST recomputes and writes the score back."""
    customer_id = path_param(event, "id")
    method = event.get("requestContext", {}).get("http", {}).get("method", "GET").upper()

    if method == "POST":
        score = _service("loyalty").update_customer_loyalty_score(customer_id)
        return ok(
            "Loyalty score updated",
            {"customer_id": customer_id, "loyalty_score": score},
            correlation_id,
        )

    use_rfm = parse_bool(query_params(event).get("use_rfm"))
    breakdown = _service("loyalty").get_customer_loyalty_breakdown(customer_id, use_rfm=use_rfm)
    logger.info(
        "Loyalty score served",
        extra={
            "correlation_id": correlation_id,
            "customer_id": customer_id,
            "score": breakdown.total,
        },
    )
    return ok("Loyalty score calculated", breakdown, correlation_id)


@api_handler("Churn assessment")
def churn_risk_handler(event, context, correlation_id: Optional[str] = None):
    customer_id = path_param(event, "id")
    analysis = _service("churn").get_customer_churn_risk(customer_id)
    return ok("Churn risk assessed", analysis, correlation_id)


@api_handler("RFM analysis")
def rfm_handler(event, context, correlation_id: Optional[str] = None):
    customer_id = path_param(event, "id")
    analysis = _service("rfm").get_customer_rfm_analysis(customer_id)
    return ok("RFM analysis complete", analysis, correlation_id)


@api_handler("CLV estimation")
def clv_handler(event, context, correlation_id: Optional[str] = None):
    customer_id = path_param(event, "id")
    acquisition_cost = parse_float(query_params(event).get("acquisition_cost"), "acquisition_cost")
    clv = _service("clv").get_customer_clv(customer_id, acquisition_cost)
    return ok("Customer lifetime value calculated", clv, correlation_id)


@api_handler("Customer insights")
def insights_handler(event, context, correlation_id: Optional[str] = None):
    """Return a 360-degree customer view."""
    customer_id = path_param(event, "id")
    insight = _service("insights").get_customer_insights(customer_id)
    logger.info(
        "Customer insights served",
        extra={"correlation_id": correlation_id, "customer_id": customer_id},
    )
    return ok("Customer insights generated", insight, correlation_id)
