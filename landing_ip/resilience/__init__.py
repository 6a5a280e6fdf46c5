"""Resilience components for the landing-IP service."""

from landing_ip.resilience.retry import LOOPBACK_HOSTS, RetryPolicy

__all__ = [
    "LOOPBACK_HOSTS",
    "RetryPolicy",
]
