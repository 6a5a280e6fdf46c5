"""Multi-provider geolocation response parser.

Recognizes three response shapes by field presence, in fixed priority order:

1. ip-api.com style — a string ``status`` field.
2. ip.sb style — any of ``ip`` / ``country_code`` / ``country``.
3. ipwho.is style — a ``success`` field.

A body matching none of them yields an all-empty result; the probe engine
then treats the missing IP as an incomplete response.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from landing_ip.middleware.error_handler import ResponseParseError, SchemaFailure
from landing_ip.models.geo import GeoResult

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value)


def _first(*values: Any) -> str:
    """Return the first truthy value as a string, or ``""``."""
    for value in values:
        if value:
            return str(value)
    return ""


def parse_geo_response(body: str | bytes | None) -> GeoResult:
    """Parse a raw geo API body into a :class:`GeoResult`.

    Raises
    ------
    ResponseParseError
        If the body is not a JSON object.
    SchemaFailure
        If the provider explicitly reported a failed lookup.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(body or "{}")
    except ValueError as exc:
        raise ResponseParseError(f"Geo response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ResponseParseError(
            f"Geo response is not a JSON object (got {type(data).__name__})"
        )

    # ip-api
    if isinstance(data.get("status"), str):
        if data["status"] != "success":
            raise SchemaFailure(_first(data.get("message")) or "ip-api lookup failed")
        return GeoResult(
            ip=_text(data.get("query")),
            country_code=_text(data.get("countryCode")).upper(),
            country=_text(data.get("country")),
            city=_text(data.get("city")),
            isp=_first(data.get("isp"), data.get("org"), data.get("as")),
        )

    # ip.sb
    if data.get("ip") or data.get("country_code") or data.get("country"):
        return GeoResult(
            ip=_text(data.get("ip")),
            country_code=_text(data.get("country_code")).upper(),
            country=_text(data.get("country")),
            city=_text(data.get("city")),
            isp=_first(
                data.get("isp"),
                data.get("organization"),
                data.get("asn_organization"),
            ),
        )

    # ipwho.is
    if "success" in data:
        if data["success"] is False:
            raise SchemaFailure(_first(data.get("message")) or "ipwho.is lookup failed")
        connection = data.get("connection")
        return GeoResult(
            ip=_text(data.get("ip")),
            country_code=_text(data.get("country_code")).upper(),
            country=_text(data.get("country")),
            city=_text(data.get("city")),
            isp=_text(connection.get("isp")) if isinstance(connection, dict) else "",
        )

    logger.warning("Unrecognized geo response shape (keys: %s)", sorted(data)[:10])
    return GeoResult()
