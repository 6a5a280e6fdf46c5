"""Run profile models and YAML loader.

A run profile is a named overlay of probe options. The built-in profiles
cover the usual two-task workflow: a periodic ``prefetch`` run that refreshes
the cache without touching labels, and a ``sync`` run that only reads the
cache, never probes and never purges it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from landing_ip.config.settings import ProbeOptions
from landing_ip.middleware.error_handler import ConfigurationError, ProfileNotFoundError

logger = logging.getLogger(__name__)


class RunProfile(BaseModel):
    """Named set of probe option overrides."""

    description: str = ""
    options: dict[str, Any] = {}


BUILTIN_PROFILES: dict[str, RunProfile] = {
    "default": RunProfile(description="Settings defaults"),
    "prefetch": RunProfile(
        description="Probe every node and refresh the cache, labels untouched",
        options={"force_refresh": True, "rename": False},
    ),
    "sync": RunProfile(
        description="Label nodes from the cache only, no active probing",
        options={"cache_only": True, "cleanup_cache": False},
    ),
}


def load_run_profiles(yaml_path: str) -> dict[str, RunProfile]:
    """Parse a run profiles YAML file into typed RunProfile objects.

    Args:
        yaml_path: Path to the YAML file. Expected shape::

            profiles:
              nightly:
                description: ...
                options: {force_refresh: true, concurrency: 12}

    Returns:
        Built-in profiles updated with the ones defined in the file. Profiles
        whose options do not validate are skipped.
    """
    profiles = dict(BUILTIN_PROFILES)
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Run profiles file not found at %s — using built-in profiles", yaml_path)
        return profiles

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse run profiles YAML at %s: %s", yaml_path, exc)
        return profiles

    if not isinstance(raw, dict) or not isinstance(raw.get("profiles"), dict):
        logger.warning("Run profiles YAML missing 'profiles' key — using built-in profiles")
        return profiles

    defaults = ProbeOptions()
    for name, config in raw["profiles"].items():
        try:
            profile = RunProfile.model_validate(config or {})
            defaults.with_overrides(profile.options)
        except ConfigurationError as exc:
            logger.error("Invalid options in run profile '%s': %s — skipping", name, exc.details)
            continue
        except Exception as exc:
            logger.error("Invalid run profile '%s': %s — skipping", name, exc)
            continue
        profiles[str(name)] = profile

    return profiles


def resolve_options(
    base: ProbeOptions,
    profiles: dict[str, RunProfile],
    profile_name: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> ProbeOptions:
    """Layer a profile and explicit overrides on top of *base*.

    Raises
    ------
    ProfileNotFoundError
        If *profile_name* is given but unknown.
    ConfigurationError
        If the resulting options are invalid.
    """
    options = base
    if profile_name:
        profile = profiles.get(profile_name)
        if profile is None:
            raise ProfileNotFoundError(f"Run profile '{profile_name}' not found")
        options = options.with_overrides(profile.options)
    return options.with_overrides(overrides)
