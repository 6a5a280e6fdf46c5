"""Middleware package — error hierarchy and request ID."""

from landing_ip.middleware.error_handler import (
    CacheMiss,
    CacheStoreError,
    ConfigurationError,
    ConnectError,
    ConversionError,
    IncompleteResultError,
    LandingError,
    ProfileNotFoundError,
    ResponseParseError,
    SchemaFailure,
    SessionStartError,
    TransportError,
    describe_error,
    register_error_handlers,
)
from landing_ip.middleware.request_id import RequestIdMiddleware, request_id_var

__all__ = [
    "CacheMiss",
    "CacheStoreError",
    "ConfigurationError",
    "ConnectError",
    "ConversionError",
    "IncompleteResultError",
    "LandingError",
    "ProfileNotFoundError",
    "RequestIdMiddleware",
    "ResponseParseError",
    "SchemaFailure",
    "SessionStartError",
    "TransportError",
    "describe_error",
    "register_error_handlers",
    "request_id_var",
]
