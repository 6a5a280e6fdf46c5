"""Health endpoint.

- GET /health — service status, cache size and the latest run's stats
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from landing_ip.models.responses import ApiResponse


def create_health_router(
    *,
    store: Any = None,
    run_stats: dict[str, Any] | None = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with cache and last-run statistics."""
        cache_entries = len(store) if store is not None and hasattr(store, "__len__") else None

        return ApiResponse(
            success=True,
            data={
                "status": "healthy",
                "cache_entries": cache_entries,
                "last_run": dict(run_stats) if run_stats else None,
            },
        ).model_dump()

    return health_router
