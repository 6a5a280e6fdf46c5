"""Global error hierarchy and FastAPI exception handlers.

All landing-probe errors extend LandingError. Run-level errors
(configuration, gateway session start) abort a whole run; the per-node kinds
are caught by the probe engine and recorded on the node instead.

The FastAPI exception handlers catch these errors (plus Pydantic's
RequestValidationError and unhandled exceptions) and return a consistent JSON
envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class LandingError(Exception):
    """Base error for all landing-probe errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


# Run-level (fatal) errors


class ConfigurationError(LandingError):
    """Invalid run configuration, e.g. an empty gateway base URL."""

    status_code = 400
    message = "Invalid run configuration"


class SessionStartError(LandingError):
    """The gateway session could not be started."""

    status_code = 502
    message = "Gateway session failed to start"


class ProfileNotFoundError(LandingError):
    """Unknown run profile requested."""

    status_code = 404
    message = "Run profile not found"


# Per-node errors


class ConversionError(LandingError):
    """No usable protocol descriptor could be produced for a node."""

    status_code = 422
    message = "Cannot build a node descriptor, the node type is likely unsupported"


class TransportError(LandingError):
    """A single HTTP request failed at the transport level."""

    status_code = 502
    message = "HTTP request failed"


class ConnectError(LandingError):
    """Every gateway address candidate failed for every retry round."""

    status_code = 502
    message = "Gateway proxy port connection failed"


class ResponseParseError(LandingError):
    """The geo API body is not a JSON object."""

    status_code = 502
    message = "Geo response is not valid JSON"


class SchemaFailure(LandingError):
    """The geo API explicitly reported a failed lookup."""

    status_code = 502
    message = "Geo lookup failed"


class IncompleteResultError(LandingError):
    """The geo API answered but no landing IP was present."""

    status_code = 502
    message = "Landing IP lookup failed: incomplete response"


class CacheMiss(LandingError):
    """Cache-only run and no cached result exists for the node."""

    status_code = 404
    message = "CACHE_MISS"


class CacheStoreError(LandingError):
    """The backing key-value store failed on read or write."""

    status_code = 500
    message = "Cache store failure"


def describe_error(exc: BaseException | None) -> str:
    """Return a short human-readable description of *exc* for node annotation."""
    if exc is None:
        return "UnknownError"
    text = str(exc).strip()
    if text:
        return text
    return exc.__class__.__name__


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _landing_error_handler(_request: Request, exc: LandingError) -> JSONResponse:
    """Handle LandingError subclasses."""
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log traceback, return generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(LandingError, _landing_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
