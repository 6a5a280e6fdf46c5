"""Proxy node record and its cache identity."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

CACHE_PREFIX = "landing-ip:"


@dataclass(eq=False)
class ProxyNode:
    """One caller-owned proxy node.

    ``server``, ``port`` and ``type`` identify the node for the whole run;
    ``descriptor`` is the full original mapping, passed through opaquely to
    converters. Only the ``landing_*`` fields and ``name`` are ever written
    by a landing run.
    """

    server: str
    port: int
    type: str = ""
    name: str = ""
    descriptor: dict[str, Any] = field(default_factory=dict)

    landing_ip: str = ""
    landing_country_code: str = ""
    landing_country: str = ""
    landing_city: str = ""
    landing_isp: str = ""
    landing_error: str = ""

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> ProxyNode:
        """Build a node from a Clash-style proxy mapping."""
        port = mapping.get("port") or 0
        try:
            port = int(port)
        except (TypeError, ValueError):
            port = 0
        return cls(
            server=str(mapping.get("server") or ""),
            port=port,
            type=str(mapping.get("type") or ""),
            name=str(mapping.get("name") or ""),
            descriptor=dict(mapping),
            landing_ip=str(mapping.get("_landing_ip") or ""),
            landing_country_code=str(mapping.get("_landing_country_code") or ""),
            landing_country=str(mapping.get("_landing_country") or ""),
            landing_city=str(mapping.get("_landing_city") or ""),
            landing_isp=str(mapping.get("_landing_isp") or ""),
            landing_error=str(mapping.get("_landing_error") or ""),
        )

    def public_fields(self) -> dict[str, Any]:
        """Descriptor without private (``_``-prefixed) keys, with the current name."""
        fields = {k: v for k, v in self.descriptor.items() if not str(k).startswith("_")}
        if self.name:
            fields["name"] = self.name
        return fields

    def to_mapping(self) -> dict[str, Any]:
        """Descriptor with the current name and ``_landing_*`` annotations."""
        mapping = self.public_fields()
        mapping.update(
            {
                "_landing_ip": self.landing_ip,
                "_landing_country_code": self.landing_country_code,
                "_landing_country": self.landing_country,
                "_landing_city": self.landing_city,
                "_landing_isp": self.landing_isp,
                "_landing_error": self.landing_error,
            }
        )
        return mapping

    def clear_landing(self) -> None:
        """Reset every landing annotation field (the error included)."""
        self.landing_ip = ""
        self.landing_country_code = ""
        self.landing_country = ""
        self.landing_city = ""
        self.landing_isp = ""
        self.landing_error = ""


def cache_key(node: ProxyNode) -> str:
    """Deterministic cache key for the node's (server, port, type) identity."""
    return f"{CACHE_PREFIX}{node.server}:{node.port}:{node.type or ''}"
