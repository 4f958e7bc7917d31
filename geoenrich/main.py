"""
Demo service hosting the GeoIP enrichment middleware.

Run with: uvicorn geoenrich.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI

from .api.enrichment_geoip import router as geoip_router
from .api.health import router as health_router
from .api.prometheus import router as prometheus_router
from .config import API_PREFIX, API_VERSION, MaxMindConfig, get_config
from .filter import GeoIpRequestFilter
from .logging_config import setup_logging
from .middleware import GeoIpMiddleware

logger = logging.getLogger("geoenrich.main")


def create_app(config: Optional[MaxMindConfig] = None,
               request_filter: Optional[GeoIpRequestFilter] = None,
               configure_logging: bool = True) -> FastAPI:
    """Build the app; a missing or unreadable database raises ConfigurationError"""
    if configure_logging:
        setup_logging()

    if request_filter is None:
        request_filter = GeoIpRequestFilter(config if config is not None else get_config())

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("GeoIP enrichment service ready", extra={
            "component": "api",
            "mode": request_filter.mode.value,
            "remote_ip_header": request_filter.remote_ip_header,
        })
        try:
            yield
        finally:
            request_filter.resolver.close()
            logger.info("GeoIP enrichment service shutting down", extra={"component": "api"})

    application = FastAPI(title="GeoIP Enrichment", version=API_VERSION, lifespan=lifespan)
    application.state.geoip_filter = request_filter
    application.add_middleware(GeoIpMiddleware, request_filter=request_filter)

    application.include_router(health_router)
    application.include_router(geoip_router, prefix=API_PREFIX)
    application.include_router(prometheus_router, prefix=API_PREFIX)
    return application
