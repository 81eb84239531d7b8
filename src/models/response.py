"""Envelope returned by the analytics HTTP handlers."""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Generic API response; ``count`` is set for list payloads."""

    message: str
    data: Optional[Any] = None
    count: Optional[int] = None
    correlation_id: Optional[str] = None
