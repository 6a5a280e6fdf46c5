"""Proxy package — node record, conversion, and gateway sessions."""

from landing_ip.proxy.convert import NodeConverter, ProxyUrlConverter, parse_produced_proxy
from landing_ip.proxy.gateway import GatewaySession, GatewaySessionManager
from landing_ip.proxy.types import CACHE_PREFIX, ProxyNode, cache_key

__all__ = [
    "CACHE_PREFIX",
    "GatewaySession",
    "GatewaySessionManager",
    "NodeConverter",
    "ProxyNode",
    "ProxyUrlConverter",
    "cache_key",
    "parse_produced_proxy",
]
