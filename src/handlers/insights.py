"""
Automated insight feed handler for /analytics/insights.

GET builds the feed without persisting it; POST generates and saves it to
the analytics log.
"""

from typing import Optional

from utils.error_handling import NotFoundError
from utils.http import api_handler, ok, owner_id_from_event
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time DB connections
_insights_service: Optional["InsightsService"] = None


def _get_insights_service():
    """Lazy-load InsightsService."""
    global _insights_service
    if _insights_service is None:
        from services.insights_service import InsightsService
        _insights_service = InsightsService()
    return _insights_service


@api_handler("Insight generation")
def lambda_handler(event, context, correlation_id: Optional[str] = None):
    service = _get_insights_service()
    owner_id = owner_id_from_event(event)
    if not service.repository.owner_exists(owner_id):
        raise NotFoundError(f"Owner {owner_id} not found")

    method = event.get("requestContext", {}).get("http", {}).get("method", "GET").upper()
    if method == "POST":
        insights = service.generate_and_save_insights(owner_id)
        message = "Insights generated and saved"
    else:
        insights = service.generate_automated_insights(owner_id)
        message = "Insights generated"

    logger.info(
        message,
        extra={"correlation_id": correlation_id, "owner_id": owner_id, "count": len(insights)},
    )
    return ok(message, insights, correlation_id)
