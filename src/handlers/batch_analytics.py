"""
Batch analytics handlers.

POST /analytics/batch runs the batch for the calling owner (or every active
owner with ``all=true``). The scheduled EventBridge rule invokes
``scheduled_handler`` to run it for all owners.
"""

from typing import Optional

from utils.error_handling import NotFoundError
from utils.http import api_handler, ok, owner_id_from_event, query_params
from utils.logging_config import get_logger
from utils.validators import parse_bool

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time DB connections
_batch_service: Optional["BatchService"] = None


def _get_batch_service():
    """Lazy-load BatchService."""
    global _batch_service
    if _batch_service is None:
        from services.batch_service import BatchService
        _batch_service = BatchService()
    return _batch_service


@api_handler("Batch analytics")
def lambda_handler(event, context, correlation_id: Optional[str] = None):
    if parse_bool(query_params(event).get("all")):
        summary = _get_batch_service().run_batch_analytics_for_all()
        return ok("Batch analytics completed for all businesses", summary, correlation_id)

    owner_id = owner_id_from_event(event)
    service = _get_batch_service()
    if not service.repository.owner_exists(owner_id):
        raise NotFoundError(f"Owner {owner_id} not found")
    result = service.run_batch_analytics(owner_id)
    message = "Batch analytics completed"
    if not result.success:
        message += " with errors"
    return ok(message, result, correlation_id)


def scheduled_handler(event, context):
    """Entry point for the scheduled EventBridge rule."""
    summary = _get_batch_service().run_batch_analytics_for_all()
    logger.info(
        "Scheduled batch analytics finished",
        extra={
            "rule": (event.get("resources") or [None])[0],
            "total_businesses": summary.total_businesses,
            "failed": summary.failed,
        },
    )
    return summary.model_dump(mode="json")
