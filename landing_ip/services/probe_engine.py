"""Probe engine — resolves the landing identity of a single node.

Per node: cache lookup (unless force-refreshing) → cache-only short-circuit
→ geo query, either directly through the node or through its gateway port
→ parse → cache write → annotate. Every per-node failure is caught here,
recorded on the node and logged; nothing propagates to the worker pool.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.config.settings import ProbeOptions
from landing_ip.integration.http_transport import HttpResponse, HttpTransport
from landing_ip.middleware.error_handler import (
    CacheMiss,
    ConfigurationError,
    ConversionError,
    IncompleteResultError,
    describe_error,
)
from landing_ip.models.geo_parser import parse_geo_response
from landing_ip.naming.tags import annotate_failure, annotate_success
from landing_ip.proxy.convert import NodeConverter
from landing_ip.proxy.gateway import GatewaySession, GatewaySessionManager
from landing_ip.proxy.types import ProxyNode, cache_key
from landing_ip.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ProbeOutcome(str, Enum):
    """Terminal state of one node's probe."""

    CACHED = "cached"
    PROBED = "probed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ProbeEngine:
    """Runs the cache/probe/annotate sequence for individual nodes.

    Dependencies are injected via the constructor so the engine is testable
    without a network, a gateway, or a persistent store. ``gateway`` and
    ``session`` are required together when ``options.uses_gateway``.
    """

    def __init__(
        self,
        *,
        cache: LandingCache,
        transport: HttpTransport,
        converter: NodeConverter,
        options: ProbeOptions,
        gateway: GatewaySessionManager | None = None,
        session: GatewaySession | None = None,
    ) -> None:
        self._cache = cache
        self._transport = transport
        self._converter = converter
        self._options = options
        self._gateway = gateway
        self._session = session
        self._retry = RetryPolicy.from_options(options)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def probe(self, node: ProxyNode, index: int) -> ProbeOutcome:
        """Resolve and apply the landing identity of *node* (position *index*)."""
        options = self._options
        key = cache_key(node)
        start_time = time.monotonic()

        try:
            cached = None if options.force_refresh else self._cache.get(key, options.ttl_ms)
            if cached is not None:
                annotate_success(node, cached, options)
                logger.debug(
                    "Landing cache hit for %s: %s",
                    node.name,
                    cached.ip,
                    extra={"node": node.name, "landing_ip": cached.ip, "cache": "hit"},
                )
                return ProbeOutcome.CACHED

            if options.cache_only:
                node.landing_error = CacheMiss.message
                logger.info(
                    "Landing probe skipped for %s: cache-only mode",
                    node.name,
                    extra={"node": node.name, "cache": "miss"},
                )
                return ProbeOutcome.SKIPPED

            response = await self._query(node, index)
            result = parse_geo_response(response.body)
            if not result.ip:
                raise IncompleteResultError()

            self._cache.set(key, result, options.ttl_ms)
            annotate_success(node, result, options)

            duration_ms = (time.monotonic() - start_time) * 1000
            logger.info(
                "Landing probe for %s: %s (%s)",
                node.name,
                result.ip,
                result.country_code or result.country,
                extra={
                    "node": node.name,
                    "landing_ip": result.ip,
                    "cache": "miss",
                    "duration_ms": round(duration_ms),
                },
            )
            return ProbeOutcome.PROBED

        except Exception as exc:
            error = describe_error(exc)
            annotate_failure(node, error, options)
            logger.error(
                "Landing probe failed for %s: %s",
                node.name,
                error,
                extra={"node": node.name, "error_reason": error},
            )
            return ProbeOutcome.FAILED

    # ------------------------------------------------------------------
    # Internal pipeline
    # ------------------------------------------------------------------

    async def _query(self, node: ProxyNode, index: int) -> HttpResponse:
        options = self._options
        if not options.uses_gateway:
            descriptor = self._converter.to_descriptor(node)
            if not descriptor:
                raise ConversionError()
            return await self._transport.get(
                options.query_url, timeout_ms=options.timeout_ms, proxy=descriptor
            )

        if self._gateway is None or self._session is None:
            raise ConfigurationError("Gateway session is not ready")
        return await self._gateway.query(
            self._session,
            index,
            url=options.query_url,
            timeout_ms=options.timeout_ms,
            retry=self._retry,
        )
