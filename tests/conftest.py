"""Shared test fixtures, fakes and hypothesis strategies for the landing-ip suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import strategies as st

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.cache.store import MemoryStore
from landing_ip.config.settings import ProbeOptions
from landing_ip.integration.http_transport import HttpResponse
from landing_ip.middleware.error_handler import TransportError
from landing_ip.proxy.convert import ProxyUrlConverter
from landing_ip.proxy.types import ProxyNode

GATEWAY_URL = "http://gateway.test:9876"
QUERY_URL = "https://geo.test/json"


def ip_api_body(ip: str, country_code: str = "us", **extra: Any) -> str:
    """Successful ip-api style response body."""
    data = {
        "status": "success",
        "query": ip,
        "countryCode": country_code,
        "country": "United States",
        "city": "Ashburn",
        "isp": "Example ISP",
    }
    data.update(extra)
    return json.dumps(data)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeTransport:
    """In-memory :class:`HttpTransport` that records every call.

    ``geo_handler(proxy)`` decides the answer to each GET: return a body
    string, or raise an exception. ``delay`` makes each GET take real time so
    concurrency can be observed.
    ``events`` keeps GETs and POSTs in the order they were issued.
    """

    def __init__(
        self,
        *,
        geo_handler: Callable[[str | None], str] | None = None,
        start_handler: Callable[[dict[str, Any]], str] | None = None,
        stop_error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self._geo_handler = geo_handler or (lambda proxy: ip_api_body("203.0.113.7"))
        self._start_handler = start_handler or self._default_start
        self._stop_error = stop_error
        self._delay = delay
        self.get_calls: list[tuple[str, str | None]] = []
        self.post_calls: list[tuple[str, dict[str, Any]]] = []
        self.events: list[tuple[str, str | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @staticmethod
    def _default_start(payload: dict[str, Any]) -> str:
        ports = [20000 + i for i in range(len(payload["proxies"]))]
        return json.dumps({"pid": 4242, "ports": ports})

    @property
    def network_calls(self) -> int:
        return len(self.get_calls) + len(self.post_calls)

    def posts_to(self, suffix: str) -> list[dict[str, Any]]:
        return [payload for url, payload in self.post_calls if url.endswith(suffix)]

    async def get(self, url: str, *, timeout_ms: int, proxy: str | None = None) -> HttpResponse:
        self.get_calls.append((url, proxy))
        self.events.append(("GET", proxy))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            body = self._geo_handler(proxy)
        finally:
            self.in_flight -= 1
        return HttpResponse(status=200, body=body)

    async def post_json(
        self, url: str, payload: dict[str, Any], *, timeout_ms: int
    ) -> HttpResponse:
        self.post_calls.append((url, payload))
        self.events.append(("POST", url))
        if url.endswith("/start"):
            return HttpResponse(status=200, body=self._start_handler(payload))
        if url.endswith("/stop"):
            if self._stop_error is not None:
                raise self._stop_error
            return HttpResponse(status=200, body="{}")
        raise TransportError(f"unexpected POST {url}")


class FailingStore(MemoryStore):
    """Store whose operations all fail."""

    def get(self, key: str) -> Any:
        raise OSError("disk unavailable")

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        raise OSError("disk unavailable")

    def cleanup(self, prefix: str) -> int:
        raise OSError("disk unavailable")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_node(i: int = 0, *, type: str = "socks5", name: str | None = None, **extra: Any) -> ProxyNode:
    mapping = {
        "name": name if name is not None else f"node-{i}",
        "type": type,
        "server": f"198.51.100.{i + 1}",
        "port": 1080 + i,
    }
    mapping.update(extra)
    return ProxyNode.from_mapping(mapping)


def make_options(**overrides: Any) -> ProbeOptions:
    base = {
        "engine": "node",
        "http_meta_url": GATEWAY_URL,
        "query_url": QUERY_URL,
        "startup_delay_ms": 0,
        "retry_interval_ms": 0,
        "connect_retries": 2,
    }
    base.update(overrides)
    return ProbeOptions.model_validate(base)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(store: MemoryStore) -> LandingCache:
    return LandingCache(store)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def converter() -> ProxyUrlConverter:
    return ProxyUrlConverter()


@pytest.fixture
def nodes() -> list[ProxyNode]:
    return [make_node(i) for i in range(5)]


# ---------------------------------------------------------------------------
# Hypothesis strategies (reusable across property tests)
# ---------------------------------------------------------------------------

ipv4_addresses = st.tuples(*[st.integers(min_value=0, max_value=255)] * 4).map(
    lambda parts: ".".join(str(p) for p in parts)
)
country_codes = st.from_regex(r"[A-Z]{2}", fullmatch=True)
plain_words = st.text(
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd"), max_codepoint=0x2FFF),
    min_size=0,
    max_size=20,
)
node_labels = st.lists(plain_words.filter(bool), min_size=0, max_size=4).map(" ".join)
