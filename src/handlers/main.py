"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

Why one Lambda?
- Keeps warm pools and settings across routes (cheaper and faster).
- Simpler to deploy while still keeping code organized by delegating to modules.

Scheduled EventBridge events are routed to the all-owners batch run.
"""

from typing import Callable, Dict, Optional, Tuple
import re

from utils.http import json_response

from . import batch_analytics, customer_analytics, health_check, insights, owner_analytics


_CUSTOMER = r"/analytics/customers/(?P<id>[^/]+)"

# (method, path pattern, handler name on module); first match wins.
_ROUTES: Tuple[Tuple[str, str, object, str], ...] = (
    ("GET", r"/health", health_check, "lambda_handler"),
    ("GET", _CUSTOMER + r"/loyalty", customer_analytics, "loyalty_handler"),
    ("POST", _CUSTOMER + r"/loyalty", customer_analytics, "loyalty_handler"),
    ("GET", _CUSTOMER + r"/churn-risk", customer_analytics, "churn_risk_handler"),
    ("GET", _CUSTOMER + r"/rfm", customer_analytics, "rfm_handler"),
    ("GET", _CUSTOMER + r"/clv", customer_analytics, "clv_handler"),
    ("GET", _CUSTOMER + r"/insights", customer_analytics, "insights_handler"),
    ("GET", r"/analytics/churn-risk", owner_analytics, "churn_risk_handler"),
    ("GET", r"/analytics/rfm", owner_analytics, "rfm_handler"),
    ("GET", r"/analytics/clv", owner_analytics, "clv_handler"),
    ("GET", r"/analytics/segments", owner_analytics, "segments_handler"),
    ("GET", r"/analytics/forecast", owner_analytics, "forecast_handler"),
    ("GET", r"/analytics/sales/trends", owner_analytics, "sales_trends_handler"),
    ("GET", r"/analytics/sales/payment-methods", owner_analytics, "payment_methods_handler"),
    ("GET", r"/analytics/sales/best-products", owner_analytics, "best_products_handler"),
    ("GET", r"/analytics/top-customers", owner_analytics, "top_customers_handler"),
    ("GET", r"/analytics/insights", insights, "lambda_handler"),
    ("POST", r"/analytics/insights", insights, "lambda_handler"),
    ("POST", r"/analytics/batch", batch_analytics, "lambda_handler"),
)


def _resolve(method: str, path: str) -> Tuple[Optional[Callable], Dict[str, str]]:
    for route_method, pattern, module, attr in _ROUTES:
        if route_method != method:
            continue
        match = re.fullmatch(pattern + r"/?", path)
        if match:
            # Resolved at call time so tests can monkeypatch module attributes.
            return getattr(module, attr), match.groupdict()
    return None, {}


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API or the EventBridge schedule.

    The event contains the HTTP method and path; we route it to the correct
    handler while keeping shared setup (logging, error handling) centralized.
    """
    if event.get("source") == "aws.events":
        return batch_analytics.scheduled_handler(event, context)

    method = event.get("requestContext", {}).get("http", {}).get("method", "").upper()
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    route_key = f"{method} {path}"

    handler, path_params = _resolve(method, path)
    if handler is None:
        return json_response(404, {"message": "Route not found", "route": route_key})

    if path_params:
        event = {**event, "pathParameters": {**(event.get("pathParameters") or {}), **path_params}}
    return handler(event, context)
