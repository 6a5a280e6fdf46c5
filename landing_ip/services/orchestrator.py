"""Landing run orchestrator with a bounded asyncio worker pool.

One run: optional prefix cleanup of the cache → at most one gateway session
for the whole node list → ``min(concurrency, len(nodes))`` workers draining a
shared FIFO queue through the probe engine → gateway teardown in a
``finally`` block. A crashing worker cancels its siblings before teardown.
Cache writes are batched so a persistent store saves once per run. Nodes are
annotated in place; only configuration and session-start errors escape
``run``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Sequence

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.config.settings import ProbeOptions
from landing_ip.integration.http_transport import HttpTransport
from landing_ip.proxy.convert import NodeConverter
from landing_ip.proxy.gateway import GatewaySession, GatewaySessionManager
from landing_ip.proxy.types import CACHE_PREFIX, ProxyNode
from landing_ip.services.probe_engine import ProbeEngine, ProbeOutcome

logger = logging.getLogger(__name__)


class LandingRunner:
    """Probes a batch of nodes with bounded concurrency.

    Parameters
    ----------
    cache:
        Landing result cache shared across runs.
    transport:
        HTTP capability for geo queries and gateway control calls.
    converter:
        Node conversion capability (direct descriptors and gateway schemas).
    options:
        Run configuration snapshot.
    """

    def __init__(
        self,
        *,
        cache: LandingCache,
        transport: HttpTransport,
        converter: NodeConverter,
        options: ProbeOptions,
    ) -> None:
        self._cache = cache
        self._transport = transport
        self._converter = converter
        self._options = options

        self._outcomes: Counter[ProbeOutcome] = Counter()
        self._node_count = 0
        self._duration_ms = 0.0
        self._active_workers = 0
        self._peak_workers = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, nodes: Sequence[ProxyNode]) -> Sequence[ProxyNode]:
        """Annotate every node in *nodes* in place and return the same sequence.

        Raises
        ------
        ConfigurationError
            If the gateway engine is selected with an empty base URL.
        SessionStartError
            If the gateway session cannot be started.
        """
        start_time = time.monotonic()
        self._outcomes = Counter()
        self._node_count = len(nodes)
        self._peak_workers = 0

        with self._cache.batch():
            worker_count = await self._run_batch(nodes)

        self._duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Landing run finished: %d nodes, %d workers, %.0f ms",
            len(nodes),
            worker_count,
            self._duration_ms,
            extra={
                "outcomes": {k.value: v for k, v in self._outcomes.items()},
                "duration_ms": round(self._duration_ms),
            },
        )
        return nodes

    async def _run_batch(self, nodes: Sequence[ProxyNode]) -> int:
        """Cleanup, gateway session, worker pool. Returns the worker count."""
        options = self._options
        if options.cleanup_cache:
            self._cache.cleanup(CACHE_PREFIX)

        gateway: GatewaySessionManager | None = None
        session: GatewaySession | None = None
        if options.uses_gateway and not options.cache_only and nodes:
            gateway = GatewaySessionManager(
                base_url=options.http_meta_url,
                transport=self._transport,
                converter=self._converter,
                stop_timeout_ms=options.stop_timeout_ms,
            )
            session = await gateway.start(
                nodes,
                request_timeout_ms=options.timeout_ms,
                probe_timeout_ms=options.probe_timeout_ms,
            )

        engine = ProbeEngine(
            cache=self._cache,
            transport=self._transport,
            converter=self._converter,
            options=options,
            gateway=gateway,
            session=session,
        )

        queue: asyncio.Queue[tuple[int, ProxyNode]] = asyncio.Queue()
        for index, node in enumerate(nodes):
            queue.put_nowait((index, node))

        worker_count = min(options.concurrency, len(nodes))
        workers = [
            asyncio.create_task(
                self._worker_loop(i, queue, engine), name=f"landing-worker-{i}"
            )
            for i in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            # no worker may outlive the run or touch a stopped session
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        finally:
            if gateway is not None and session is not None:
                await gateway.stop(session)
        return worker_count

    def get_stats(self) -> dict:
        """Return statistics of the most recent run.

        Returns
        -------
        dict with keys:
            nodes, cached, probed, skipped, failed, peak_workers, duration_ms
        """
        stats: dict = {"nodes": self._node_count}
        for outcome in ProbeOutcome:
            stats[outcome.value] = self._outcomes.get(outcome, 0)
        stats["peak_workers"] = self._peak_workers
        stats["duration_ms"] = round(self._duration_ms, 2)
        return stats

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    async def _worker_loop(
        self,
        worker_id: int,
        queue: asyncio.Queue[tuple[int, ProxyNode]],
        engine: ProbeEngine,
    ) -> None:
        """Worker coroutine — pops nodes until the queue is empty."""
        logger.debug("Worker %d started", worker_id)

        while True:
            try:
                index, node = queue.get_nowait()
            except asyncio.QueueEmpty:
                break

            self._active_workers += 1
            self._peak_workers = max(self._peak_workers, self._active_workers)
            try:
                outcome = await engine.probe(node, index)
            finally:
                self._active_workers -= 1
            self._outcomes[outcome] += 1

        logger.debug("Worker %d stopped", worker_id)
