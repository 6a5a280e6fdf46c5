"""Node label rewriting with landing tags."""

from landing_ip.naming.tags import (
    DEFAULT_FAIL_TAG,
    LANDING_MARKER,
    annotate_failure,
    annotate_success,
    apply_label,
    compose_landing_tag,
    flag_emoji,
    strip_landing_tags,
)

__all__ = [
    "DEFAULT_FAIL_TAG",
    "LANDING_MARKER",
    "annotate_failure",
    "annotate_success",
    "apply_label",
    "compose_landing_tag",
    "flag_emoji",
    "strip_landing_tags",
]
