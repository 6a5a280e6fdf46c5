"""API response models.

All API responses are wrapped in the envelope:
{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class LandingRunData(BaseModel):
    """Payload of a finished landing run."""

    proxies: list[dict[str, Any]]
    stats: dict[str, Any]
