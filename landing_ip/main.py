"""FastAPI application entry point with lifespan management.

Startup: validate settings, configure logging, open the persistent result
store, load run profiles, mount routers.
Shutdown: nothing to drain — every run tears down its own gateway session.

Run with ``uvicorn landing_ip.main:app --port 8002``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.cache.store import JsonFileStore
from landing_ip.config.profiles import load_run_profiles
from landing_ip.config.settings import LandingSettings
from landing_ip.integration.http_transport import HttpxTransport
from landing_ip.logging_config import configure_logging
from landing_ip.middleware.error_handler import register_error_handlers
from landing_ip.middleware.request_id import RequestIdMiddleware
from landing_ip.proxy.convert import ProxyUrlConverter
from landing_ip.routers.health import create_health_router
from landing_ip.routers.landing import create_landing_router

logger = logging.getLogger(__name__)

# Shared state for the application, populated during lifespan startup
_state: dict = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings = LandingSettings()

    configure_logging(settings.log_level)
    logger.info("Starting landing-ip service on port %d", settings.port)

    store = JsonFileStore(settings.cache_path)
    cache = LandingCache(store)
    profiles = load_run_profiles(settings.profiles_path)
    run_stats: dict = {}

    app.include_router(create_health_router(store=store, run_stats=run_stats))
    app.include_router(
        create_landing_router(
            cache=cache,
            transport=HttpxTransport(),
            converter=ProxyUrlConverter(),
            defaults=settings.probe,
            profiles=profiles,
            run_stats=run_stats,
        )
    )

    _state.update({
        "settings": settings,
        "store": store,
        "profiles": profiles,
        "run_stats": run_stats,
    })

    logger.info(
        "Landing-ip service started (cache=%s, profiles=%s)",
        store.path,
        sorted(profiles),
    )

    yield

    logger.info("Landing-ip service shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Landing IP Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app


app = create_app()
