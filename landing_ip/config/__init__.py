"""Configuration module — settings, probe options and run profiles."""

from landing_ip.config.profiles import (
    BUILTIN_PROFILES,
    RunProfile,
    load_run_profiles,
    resolve_options,
)
from landing_ip.config.settings import LandingSettings, ProbeOptions

__all__ = [
    "BUILTIN_PROFILES",
    "LandingSettings",
    "ProbeOptions",
    "RunProfile",
    "load_run_profiles",
    "resolve_options",
]
