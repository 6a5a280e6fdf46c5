"""Landing probe endpoint.

- POST /api/v1/landing — probe a batch of proxies and return them annotated
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.config.profiles import RunProfile, resolve_options
from landing_ip.config.settings import ProbeOptions
from landing_ip.models.requests import LandingRequest
from landing_ip.models.responses import ApiResponse, LandingRunData
from landing_ip.proxy.types import ProxyNode
from landing_ip.services.orchestrator import LandingRunner

logger = logging.getLogger(__name__)


def create_landing_router(
    *,
    cache: LandingCache,
    transport: Any,
    converter: Any,
    defaults: ProbeOptions,
    profiles: dict[str, RunProfile],
    run_stats: dict[str, Any] | None = None,
) -> APIRouter:
    """Factory that creates the landing router with injected dependencies.

    Parameters
    ----------
    cache:
        Shared landing result cache.
    transport:
        HTTP capability passed to every run.
    converter:
        Node conversion capability passed to every run.
    defaults:
        Service-level probe options (from settings).
    profiles:
        Named run profiles selectable per request.
    run_stats:
        Shared dict updated with the stats of the latest run (health endpoint).
    """
    landing_router = APIRouter(prefix="/api/v1/landing", tags=["landing"])
    _stats = run_stats if run_stats is not None else {}

    @landing_router.post("")
    async def run_landing(body: LandingRequest) -> dict:
        """Probe every proxy in the request and return them annotated in place."""
        options = resolve_options(defaults, profiles, body.profile, body.options)
        nodes = [ProxyNode.from_mapping(proxy) for proxy in body.proxies]

        runner = LandingRunner(
            cache=cache,
            transport=transport,
            converter=converter,
            options=options,
        )
        await runner.run(nodes)

        stats = runner.get_stats()
        _stats.clear()
        _stats.update(stats)

        return ApiResponse[LandingRunData](
            success=True,
            data=LandingRunData(
                proxies=[node.to_mapping() for node in nodes],
                stats=stats,
            ),
            meta={"profile": body.profile, "engine": options.engine},
        ).model_dump()

    return landing_router
