"""Landing tags in node display labels.

A successful probe renders ``[落地 🇺🇸 | US | 1.2.3.4 | Example ISP]`` as a
prefix or suffix of the node name; a failed one appends the fail tag.
Existing landing and fail tags are always stripped first, so relabeling is
idempotent across runs.
"""

from __future__ import annotations

import re

from landing_ip.config.settings import ProbeOptions
from landing_ip.models.geo import GeoResult
from landing_ip.proxy.types import ProxyNode

LANDING_MARKER = "落地"
DEFAULT_FAIL_TAG = "❌落地失败"

_LANDING_TAG = re.compile(r"\s*\[" + LANDING_MARKER + r"[^\]]*\]\s*")
_REGIONAL_INDICATOR_OFFSET = 0x1F1E6 - ord("A")
_FLAG_OVERRIDES = {"🇹🇼": "🇨🇳"}
_BRACKETS = re.compile(r"[\[\]]")


def flag_emoji(country_code: str) -> str:
    """Regional-indicator flag for a two-letter country code, else ``""``."""
    code = (country_code or "").strip().upper()
    if len(code) != 2 or not (code.isascii() and code.isalpha()):
        return ""
    flag = "".join(chr(_REGIONAL_INDICATOR_OFFSET + ord(c)) for c in code)
    return _FLAG_OVERRIDES.get(flag, flag)


def strip_landing_tags(label: str, fail_tag: str = DEFAULT_FAIL_TAG) -> str:
    """Remove landing and fail tags from *label* and collapse whitespace."""
    text = _LANDING_TAG.sub(" ", label or "")
    for tag in (DEFAULT_FAIL_TAG, fail_tag):
        if tag:
            text = text.replace(tag, " ")
    return " ".join(text.split())


def compose_landing_tag(result: GeoResult, options: ProbeOptions) -> str:
    parts: list[str] = []
    if options.keep_flag and result.country_code:
        flag = flag_emoji(result.country_code)
        if flag:
            parts.append(flag)
    if result.country_code or result.country:
        parts.append(result.country_code or result.country)
    if result.ip:
        parts.append(result.ip)
    if options.show_city and result.city:
        parts.append(result.city)
    if options.show_isp and result.isp:
        parts.append(result.isp)
    body = " | ".join(_BRACKETS.sub("", part) for part in parts)
    return f"[{LANDING_MARKER} {body}]"


def apply_label(label: str, result: GeoResult | None, options: ProbeOptions) -> str:
    """Return *label* rewritten for *result* (None means the probe failed).

    With renaming disabled, or on failure with an empty fail tag, the label is
    returned unchanged.
    """
    if not options.rename:
        return label
    if result is None:
        if not options.fail_tag:
            return label
        clean = strip_landing_tags(label, options.fail_tag)
        return f"{clean} {options.fail_tag}".strip()
    clean = strip_landing_tags(label, options.fail_tag)
    tag = compose_landing_tag(result, options)
    if options.position == "prefix":
        return f"{tag} {clean}".strip()
    return f"{clean} {tag}".strip()


def annotate_success(node: ProxyNode, result: GeoResult, options: ProbeOptions) -> None:
    """Write *result* into the node's landing fields and relabel it."""
    node.landing_ip = result.ip
    node.landing_country_code = result.country_code
    node.landing_country = result.country
    node.landing_city = result.city
    node.landing_isp = result.isp
    node.landing_error = ""
    node.name = apply_label(node.name, result, options)


def annotate_failure(node: ProxyNode, error: str, options: ProbeOptions) -> None:
    """Clear the node's landing fields, record *error*, and tag the label."""
    node.clear_landing()
    node.landing_error = error
    node.name = apply_label(node.name, None, options)
