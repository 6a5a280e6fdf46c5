"""Pydantic request models for the landing endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class LandingRequest(BaseModel):
    """Request model for one landing probe run over a batch of proxies.

    ``proxies`` are Clash-style mappings (at least ``server``, ``port`` and
    ``type``). ``profile`` names a run profile; ``options`` override both the
    service defaults and the profile.
    """

    proxies: list[dict[str, Any]] = Field(..., max_length=5000)
    profile: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)
