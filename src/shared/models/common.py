"""Common types used across all models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from .base import KubefirstBaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageResponse(KubefirstBaseModel):
    """Plain acknowledgement returned by asynchronous operations."""

    message: str


class ErrorResponse(KubefirstBaseModel):
    """Standard error response format."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")
    timestamp: datetime = Field(default_factory=utc_now)
