"""Retry policy for reaching a freshly started gateway port.

The gateway binds its per-node ports asynchronously after ``/start``
returns, so the first connections may be refused. A probe waits
``startup_delay_ms`` once, then makes up to ``attempts`` rounds over every
loopback candidate, sleeping ``interval_ms`` between rounds.
"""

from __future__ import annotations

from dataclasses import dataclass

from landing_ip.config.settings import ProbeOptions

LOOPBACK_HOSTS: tuple[str, ...] = ("127.0.0.1", "localhost")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt schedule for connecting through a gateway port."""

    attempts: int = 8
    interval_ms: int = 180
    startup_delay_ms: int = 250
    hosts: tuple[str, ...] = LOOPBACK_HOSTS
    scheme: str = "socks5"

    @classmethod
    def from_options(cls, options: ProbeOptions) -> RetryPolicy:
        return cls(
            attempts=options.connect_retries,
            interval_ms=options.retry_interval_ms,
            startup_delay_ms=options.startup_delay_ms,
        )

    def candidates(self, port: int) -> list[str]:
        """Proxy URLs to try for *port*, in order."""
        return [f"{self.scheme}://{host}:{port}" for host in self.hosts]
