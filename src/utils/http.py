"""Helpers shared by the HTTP handlers: responses, event parsing, error mapping."""

import functools
import json
import uuid
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from models.response import ApiResponse
from utils.error_handling import AppError, to_response
from utils.logging_config import get_logger
from utils.validators import ensure_present

logger = get_logger(__name__)


def json_response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def ok(message: str, data: Any, correlation_id: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a payload in ApiResponse; lists also report their length."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    response = ApiResponse(
        message=message,
        data=data,
        count=len(data) if isinstance(data, list) else None,
        correlation_id=correlation_id,
    )
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": response.model_dump_json(exclude_none=True),
    }


def query_params(event: Dict[str, Any]) -> Dict[str, str]:
    return event.get("queryStringParameters") or {}


def path_param(event: Dict[str, Any], name: str) -> str:
    value = (event.get("pathParameters") or {}).get(name)
    ensure_present(value, name)
    return value


def owner_id_from_event(event: Dict[str, Any]) -> str:
    """
    Resolve the owning business.

    Prefer the authenticated subject from the JWT authorizer; fall back to an
    explicit ``owner_id`` query parameter for internal callers.
    """
    claims = (
        event.get("requestContext", {}).get("authorizer", {}).get("jwt", {}).get("claims", {})
    )
    owner_id = claims.get("sub") or query_params(event).get("owner_id")
    ensure_present(owner_id, "owner_id")
    return owner_id


def api_handler(action: str) -> Callable:
    """
    Give a handler a correlation id and map failures to responses.

    AppError subclasses keep their status code; anything else is logged and
    returned as a 500.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(event, context):
            correlation_id = str(uuid.uuid4())
            try:
                return func(event, context, correlation_id)
            except AppError as exc:
                logger.warning(
                    f"{action} rejected",
                    extra={"correlation_id": correlation_id, "error": str(exc)},
                )
                return to_response(exc)
            except Exception as exc:
                logger.exception(f"{action} failed", extra={"correlation_id": correlation_id})
                return json_response(
                    500,
                    {
                        "message": f"{action} failed",
                        "error": str(exc),
                        "correlation_id": correlation_id,
                    },
                )

        return wrapper

    return decorator
