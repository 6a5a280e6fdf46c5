"""Canonical geolocation result for a landing IP."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class GeoResult(BaseModel):
    """Landing identity as reported by a geolocation API.

    ``country_code`` is an upper-case ISO-3166 alpha-2 code or empty.
    ``at`` is the epoch-millisecond timestamp of parsing.
    """

    ip: str = ""
    country_code: str = ""
    country: str = ""
    city: str = ""
    isp: str = ""
    at: int = Field(default_factory=now_ms)

    model_config = {"frozen": True}
