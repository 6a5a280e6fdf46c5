"""Probe engine and run orchestration."""

from landing_ip.services.orchestrator import LandingRunner
from landing_ip.services.probe_engine import ProbeEngine, ProbeOutcome

__all__ = [
    "LandingRunner",
    "ProbeEngine",
    "ProbeOutcome",
]
