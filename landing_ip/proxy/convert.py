"""Node conversion capability.

Turning a node into a dialect the probing backend understands is injected
through :class:`NodeConverter`. Two forms are needed:

- ``to_descriptor`` — a proxy descriptor the HTTP transport can route a
  single request through (direct probing).
- ``to_gateway_schema`` — a ClashMeta-compatible proxy entry for the gateway
  ``/start`` call, either as a mapping or as produced YAML/JSON text.

:class:`ProxyUrlConverter` is the default used by the service. It handles
the node types httpx can route natively and passes Clash mappings through
for the gateway.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib.parse import quote

import yaml

from landing_ip.proxy.types import ProxyNode

logger = logging.getLogger(__name__)


class NodeConverter(Protocol):
    """Converts a node into backend-specific forms."""

    def to_descriptor(self, node: ProxyNode) -> str:
        """Return a transport proxy descriptor, or ``""`` when unsupported."""
        ...

    def to_gateway_schema(self, node: ProxyNode) -> dict[str, Any] | str | None:
        """Return the gateway proxy entry (mapping or YAML/JSON text)."""
        ...


# Clash proxy type -> URL scheme understood by httpx
_URL_SCHEMES: dict[str, str] = {
    "http": "http",
    "socks5": "socks5",
}


class ProxyUrlConverter:
    """Default converter: proxy URLs for direct mode, Clash mappings for the gateway."""

    def to_descriptor(self, node: ProxyNode) -> str:
        scheme = _URL_SCHEMES.get(node.type.lower())
        if scheme is None or not node.server or not node.port:
            return ""
        if scheme == "http" and node.descriptor.get("tls"):
            scheme = "https"

        userinfo = ""
        username = node.descriptor.get("username")
        if username:
            userinfo = quote(str(username), safe="")
            password = node.descriptor.get("password")
            if password:
                userinfo += ":" + quote(str(password), safe="")
            userinfo += "@"

        host = node.server
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{scheme}://{userinfo}{host}:{node.port}"

    def to_gateway_schema(self, node: ProxyNode) -> dict[str, Any] | None:
        fields = node.public_fields()
        if not fields.get("type"):
            return None
        return fields


def _first_proxy(data: Any) -> dict[str, Any] | None:
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    if isinstance(data, dict):
        proxies = data.get("proxies")
        if isinstance(proxies, list) and proxies and isinstance(proxies[0], dict):
            return proxies[0]
    return None


def parse_produced_proxy(text: str | None) -> dict[str, Any] | None:
    """Extract the first proxy entry from produced YAML or JSON text.

    Accepts either a top-level list of proxies or a mapping with a
    ``proxies`` list. Returns ``None`` when nothing usable is found.
    """
    if not text or not isinstance(text, str):
        return None
    try:
        proxy = _first_proxy(yaml.safe_load(text))
        if proxy is not None:
            return proxy
    except yaml.YAMLError:
        logger.debug("Produced proxy text is not YAML, trying JSON")
    try:
        return _first_proxy(json.loads(text))
    except ValueError:
        return None
