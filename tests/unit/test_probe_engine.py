"""Unit tests for the per-node probe engine."""

from __future__ import annotations

import json

import pytest

from conftest import (
    FailingStore,
    FakeTransport,
    QUERY_URL,
    ip_api_body,
    make_node,
    make_options,
)
from landing_ip.cache.landing_cache import LandingCache
from landing_ip.middleware.error_handler import TransportError
from landing_ip.models.geo import GeoResult
from landing_ip.naming.tags import DEFAULT_FAIL_TAG
from landing_ip.proxy.convert import ProxyUrlConverter
from landing_ip.proxy.gateway import GatewaySession, GatewaySessionManager
from landing_ip.proxy.types import cache_key
from landing_ip.services.probe_engine import ProbeEngine, ProbeOutcome

CACHED = GeoResult(ip="9.9.9.9", country_code="JP", country="Japan", isp="Cached ISP")


def _engine(cache: LandingCache, transport: FakeTransport, **option_overrides) -> ProbeEngine:
    return ProbeEngine(
        cache=cache,
        transport=transport,
        converter=ProxyUrlConverter(),
        options=make_options(**option_overrides),
    )


class TestCachePath:
    @pytest.mark.asyncio
    async def test_cache_hit_annotates_without_network(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)
        cache.set(cache_key(node), CACHED, 3600_000)

        outcome = await _engine(cache, transport).probe(node, 0)

        assert outcome is ProbeOutcome.CACHED
        assert node.landing_ip == "9.9.9.9"
        assert "[落地 🇯🇵 | JP | 9.9.9.9 | Cached ISP]" in node.name
        assert transport.network_calls == 0

    @pytest.mark.asyncio
    async def test_cache_only_miss_skips_without_network(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)

        outcome = await _engine(cache, transport, cache_only=True).probe(node, 0)

        assert outcome is ProbeOutcome.SKIPPED
        assert node.landing_error == "CACHE_MISS"
        assert node.landing_ip == ""
        assert node.name == "node-0"
        assert transport.network_calls == 0

    @pytest.mark.asyncio
    async def test_cache_only_hit_is_applied(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)
        cache.set(cache_key(node), CACHED, 3600_000)

        outcome = await _engine(cache, transport, cache_only=True).probe(node, 0)

        assert outcome is ProbeOutcome.CACHED
        assert node.landing_country_code == "JP"

    @pytest.mark.asyncio
    async def test_force_refresh_probes_and_overwrites_cache(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)
        cache.set(cache_key(node), CACHED, 3600_000)

        outcome = await _engine(cache, transport, force_refresh=True).probe(node, 0)

        assert outcome is ProbeOutcome.PROBED
        assert len(transport.get_calls) == 1
        assert node.landing_ip == "203.0.113.7"
        assert cache.get(cache_key(node), 3600_000).ip == "203.0.113.7"


class TestDirectProbe:
    @pytest.mark.asyncio
    async def test_probe_through_node_descriptor(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(2)

        outcome = await _engine(cache, transport).probe(node, 2)

        assert outcome is ProbeOutcome.PROBED
        assert transport.get_calls == [(QUERY_URL, "socks5://198.51.100.3:1082")]
        assert node.landing_ip == "203.0.113.7"
        assert node.landing_country_code == "US"
        assert node.landing_isp == "Example ISP"
        assert node.landing_error == ""
        assert node.name.startswith("node-2 [落地 🇺🇸 | US | 203.0.113.7")

    @pytest.mark.asyncio
    async def test_result_is_cached_with_ttl(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)
        await _engine(cache, transport, cache_hours=2).probe(node, 0)

        assert cache.get(cache_key(node), 2 * 3600_000).ip == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_unsupported_node_is_conversion_failure(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0, type="vmess")

        outcome = await _engine(cache, transport).probe(node, 0)

        assert outcome is ProbeOutcome.FAILED
        assert "unsupported" in node.landing_error
        assert transport.network_calls == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_incomplete_response_is_failure(self, cache: LandingCache) -> None:
        transport = FakeTransport(geo_handler=lambda proxy: json.dumps({"hello": "world"}))
        node = make_node(0)

        outcome = await _engine(cache, transport).probe(node, 0)

        assert outcome is ProbeOutcome.FAILED
        assert node.landing_error == "Landing IP lookup failed: incomplete response"
        assert cache.get(cache_key(node), 3600_000) is None

    @pytest.mark.asyncio
    async def test_schema_failure_records_provider_message(self, cache: LandingCache) -> None:
        transport = FakeTransport(
            geo_handler=lambda proxy: json.dumps({"status": "fail", "message": "private range"})
        )
        node = make_node(0)

        await _engine(cache, transport).probe(node, 0)

        assert node.landing_error == "private range"

    @pytest.mark.asyncio
    async def test_parse_failure_is_contained(self, cache: LandingCache) -> None:
        transport = FakeTransport(geo_handler=lambda proxy: "<html>")
        node = make_node(0)

        outcome = await _engine(cache, transport).probe(node, 0)

        assert outcome is ProbeOutcome.FAILED
        assert "not valid JSON" in node.landing_error

    @pytest.mark.asyncio
    async def test_failure_clears_previous_annotation(self, cache: LandingCache) -> None:
        def handler(proxy: str | None) -> str:
            raise TransportError("timed out")

        node = make_node(0)
        node.landing_ip = "1.1.1.1"
        node.landing_country_code = "US"
        node.landing_city = "Ashburn"
        node.landing_isp = "Old ISP"

        await _engine(cache, FakeTransport(geo_handler=handler)).probe(node, 0)

        assert (node.landing_ip, node.landing_country_code, node.landing_country) == ("", "", "")
        assert (node.landing_city, node.landing_isp) == ("", "")
        assert node.landing_error == "timed out"

    @pytest.mark.asyncio
    async def test_repeated_failures_keep_single_fail_tag(self, cache: LandingCache) -> None:
        def handler(proxy: str | None) -> str:
            raise TransportError("timed out")

        transport = FakeTransport(geo_handler=handler)
        node = make_node(0, name="SG 03")

        for _ in range(3):
            await _engine(cache, transport).probe(node, 0)

        assert node.name == f"SG 03 {DEFAULT_FAIL_TAG}"
        assert node.name.count(DEFAULT_FAIL_TAG) == 1

    @pytest.mark.asyncio
    async def test_failure_without_rename_keeps_label(self, cache: LandingCache) -> None:
        transport = FakeTransport(geo_handler=lambda proxy: "<html>")
        node = make_node(0, name="SG 03")

        await _engine(cache, transport, rename=False).probe(node, 0)

        assert node.name == "SG 03"
        assert node.landing_error

    @pytest.mark.asyncio
    async def test_store_failure_is_contained(self, transport: FakeTransport) -> None:
        node = make_node(0)

        outcome = await _engine(LandingCache(FailingStore()), transport).probe(node, 0)

        assert outcome is ProbeOutcome.FAILED
        assert "Cache read failed" in node.landing_error


class TestGatewayProbe:
    @pytest.mark.asyncio
    async def test_queries_through_session_port(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        options = make_options(engine="http-meta")
        gateway = GatewaySessionManager(
            base_url=options.http_meta_url, transport=transport, converter=ProxyUrlConverter()
        )
        engine = ProbeEngine(
            cache=cache,
            transport=transport,
            converter=ProxyUrlConverter(),
            options=options,
            gateway=gateway,
            session=GatewaySession(pid=7, ports=(30000, 30001)),
        )
        node = make_node(1, type="vless")

        outcome = await engine.probe(node, 1)

        assert outcome is ProbeOutcome.PROBED
        assert transport.get_calls == [(QUERY_URL, "socks5://127.0.0.1:30001")]

    @pytest.mark.asyncio
    async def test_missing_session_is_failure(
        self, cache: LandingCache, transport: FakeTransport
    ) -> None:
        node = make_node(0)

        outcome = await _engine(cache, transport, engine="http-meta").probe(node, 0)

        assert outcome is ProbeOutcome.FAILED
        assert node.landing_error == "Gateway session is not ready"
