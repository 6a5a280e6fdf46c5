"""HTTP transport capability backed by httpx.

The probe engine and the gateway manager only see :class:`HttpTransport`;
tests substitute fakes. :class:`HttpxTransport` opens a short-lived
``httpx.AsyncClient`` per request because every probe may route through a
different proxy. SOCKS proxies need the ``httpx[socks]`` extra.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from landing_ip.middleware.error_handler import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """Status code and decoded body of a completed request."""

    status: int
    body: str


class HttpTransport(Protocol):
    """Issues HTTP requests, optionally through a proxy."""

    async def get(
        self, url: str, *, timeout_ms: int, proxy: str | None = None
    ) -> HttpResponse:
        ...

    async def post_json(
        self, url: str, payload: dict[str, Any], *, timeout_ms: int
    ) -> HttpResponse:
        ...


class HttpxTransport:
    """:class:`HttpTransport` implementation on top of ``httpx.AsyncClient``.

    Parameters
    ----------
    verify:
        TLS verification for the geo API (default True).
    user_agent:
        ``User-Agent`` header sent with every request.
    """

    def __init__(
        self,
        *,
        verify: bool = True,
        user_agent: str = "landing-ip/1.0",
    ) -> None:
        self._verify = verify
        self._headers = {"User-Agent": user_agent}

    async def get(
        self, url: str, *, timeout_ms: int, proxy: str | None = None
    ) -> HttpResponse:
        """GET *url*, routed through *proxy* when given.

        Raises
        ------
        TransportError
            On any connection, timeout, or protocol failure.
        """
        try:
            async with httpx.AsyncClient(
                proxy=proxy,
                timeout=httpx.Timeout(timeout_ms / 1000.0),
                verify=self._verify,
                headers=self._headers,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(_describe(exc), url=url) from exc
        return HttpResponse(status=response.status_code, body=response.text)

    async def post_json(
        self, url: str, payload: dict[str, Any], *, timeout_ms: int
    ) -> HttpResponse:
        """POST *payload* as JSON to *url* (never proxied).

        Raises
        ------
        TransportError
            On any connection, timeout, or protocol failure.
        """
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout_ms / 1000.0),
                headers=self._headers,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(_describe(exc), url=url) from exc
        return HttpResponse(status=response.status_code, body=response.text)


def _describe(exc: httpx.HTTPError) -> str:
    text = str(exc).strip()
    return text or exc.__class__.__name__
