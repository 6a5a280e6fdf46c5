"""Gateway session manager for batched landing probes.

The gateway is an external HTTP-controlled process that accepts a batch of
ClashMeta proxy entries and exposes one local SOCKS port per entry, in
submission order. One session is started per run, shared read-only by every
probe, and stopped exactly once.

Lifecycle
---------
1. ``start(nodes, ...)`` — convert nodes, ``POST /start``, get pid + ports.
2. ``query(session, index, ...)`` — GET the geo URL through the node's port
   with startup delay and retry rounds.
3. ``stop(session)`` — best-effort ``POST /stop``.

``session(...)`` wraps 1 and 3 as an async context manager.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from landing_ip.integration.http_transport import HttpResponse, HttpTransport
from landing_ip.middleware.error_handler import (
    ConfigurationError,
    ConnectError,
    SessionStartError,
    TransportError,
    describe_error,
)
from landing_ip.proxy.convert import NodeConverter, parse_produced_proxy
from landing_ip.proxy.types import ProxyNode
from landing_ip.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewaySession:
    """A started gateway process and its per-node local ports."""

    pid: Any
    ports: tuple[int, ...]

    def port_for(self, index: int) -> int | None:
        """Local port assigned to the node at *index*, or None."""
        if 0 <= index < len(self.ports):
            return self.ports[index] or None
        return None


class GatewaySessionManager:
    """Starts, queries through, and stops gateway sessions.

    Parameters
    ----------
    base_url:
        Gateway control address, e.g. ``http://127.0.0.1:9876``.
    transport:
        HTTP capability used for control calls and proxied queries.
    converter:
        Produces the gateway proxy entry for each node.
    stop_timeout_ms:
        Timeout for the ``/stop`` call (default 3000).

    Raises
    ------
    ConfigurationError
        If *base_url* is empty.
    """

    def __init__(
        self,
        *,
        base_url: str,
        transport: HttpTransport,
        converter: NodeConverter,
        stop_timeout_ms: int = 3000,
    ) -> None:
        self._base_url = str(base_url or "").strip().rstrip("/")
        if not self._base_url:
            raise ConfigurationError("Gateway base URL must not be empty")
        self._transport = transport
        self._converter = converter
        self._stop_timeout_ms = stop_timeout_ms

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # start / stop
    # ------------------------------------------------------------------

    async def start(
        self,
        nodes: Sequence[ProxyNode],
        *,
        request_timeout_ms: int,
        probe_timeout_ms: int,
    ) -> GatewaySession:
        """Start one gateway process for *nodes*.

        Raises
        ------
        SessionStartError
            If any node has no usable schema, the call fails, or the gateway
            returns no ports (or not one port per node).
        """
        schemas = [self.normalize(node) for node in nodes]
        bad = sum(1 for schema in schemas if not schema.get("type"))
        if bad:
            raise SessionStartError(
                f"Node conversion failed: {bad} node(s) cannot be converted to ClashMeta",
                bad_nodes=bad,
            )

        try:
            response = await self._transport.post_json(
                f"{self._base_url}/start",
                {"timeout": probe_timeout_ms, "proxies": schemas},
                timeout_ms=request_timeout_ms,
            )
        except TransportError as exc:
            raise SessionStartError(
                f"Gateway start request failed: {describe_error(exc)}"
            ) from exc

        try:
            payload = json.loads(response.body or "{}")
        except ValueError as exc:
            raise SessionStartError(
                f"Gateway start returned a non-JSON body: {response.body[:200]}"
            ) from exc
        if not isinstance(payload, dict):
            payload = {}

        ports = payload.get("ports")
        if not isinstance(ports, list) or not ports:
            raise SessionStartError(
                f"Gateway start failed: {response.body or 'no ports available'}"
            )
        if len(ports) != len(nodes):
            raise SessionStartError(
                f"Gateway returned {len(ports)} ports for {len(nodes)} nodes",
                pid=payload.get("pid"),
            )

        session = GatewaySession(pid=payload.get("pid"), ports=tuple(ports))
        logger.info(
            "Gateway session started: pid=%s, ports=%d",
            session.pid,
            len(session.ports),
        )
        return session

    async def stop(self, session: GatewaySession) -> None:
        """Ask the gateway to terminate *session*. Failures are only logged."""
        if not session.pid:
            return
        try:
            await self._transport.post_json(
                f"{self._base_url}/stop",
                {"pid": session.pid},
                timeout_ms=self._stop_timeout_ms,
            )
            logger.info("Gateway session stopped: pid=%s", session.pid)
        except Exception:
            logger.warning(
                "Failed to stop gateway session pid=%s", session.pid, exc_info=True
            )

    @asynccontextmanager
    async def session(
        self,
        nodes: Sequence[ProxyNode],
        *,
        request_timeout_ms: int,
        probe_timeout_ms: int,
    ) -> AsyncIterator[GatewaySession]:
        """Start a session for *nodes* and always stop it on exit."""
        session = await self.start(
            nodes,
            request_timeout_ms=request_timeout_ms,
            probe_timeout_ms=probe_timeout_ms,
        )
        try:
            yield session
        finally:
            await self.stop(session)

    # ------------------------------------------------------------------
    # query
    # ------------------------------------------------------------------

    async def query(
        self,
        session: GatewaySession,
        index: int,
        *,
        url: str,
        timeout_ms: int,
        retry: RetryPolicy,
    ) -> HttpResponse:
        """GET *url* through the gateway port of the node at *index*.

        Raises
        ------
        ConnectError
            If the node has no port or every round and candidate failed.
        """
        port = session.port_for(index)
        if port is None:
            raise ConnectError(f"Gateway port mapping failed for node #{index}")

        candidates = retry.candidates(port)
        last_error: Exception | None = None

        await asyncio.sleep(retry.startup_delay_ms / 1000.0)

        for attempt in range(retry.attempts):
            for proxy in candidates:
                try:
                    return await self._transport.get(
                        url, timeout_ms=timeout_ms, proxy=proxy
                    )
                except TransportError as exc:
                    last_error = exc
            logger.debug(
                "Gateway port %d not reachable (round %d/%d)",
                port,
                attempt + 1,
                retry.attempts,
                extra={"port": port},
            )
            if attempt < retry.attempts - 1:
                await asyncio.sleep(retry.interval_ms / 1000.0)

        raise ConnectError(
            f"Gateway proxy port connection failed: {describe_error(last_error)} @{port}",
            port=port,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def normalize(self, node: ProxyNode) -> dict[str, Any]:
        """Gateway entry for *node*, falling back to its public fields."""
        try:
            produced = self._converter.to_gateway_schema(node)
        except Exception as exc:
            logger.debug(
                "Gateway conversion failed for %s: %s", node.name, exc, extra={"node": node.name}
            )
            produced = None
        if isinstance(produced, str):
            produced = parse_produced_proxy(produced)
        if isinstance(produced, dict) and produced:
            return produced
        return node.public_fields()
