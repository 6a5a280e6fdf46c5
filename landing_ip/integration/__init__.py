"""Integrations with external HTTP services."""

from landing_ip.integration.http_transport import HttpResponse, HttpTransport, HttpxTransport

__all__ = ["HttpResponse", "HttpTransport", "HttpxTransport"]
