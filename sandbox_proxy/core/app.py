"""
Main FastAPI Application
Wires the proxy, security settings and validation endpoints together
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config.settings import Settings, get_settings
from sandbox_proxy.api import proxy_routes, settings_routes, validation_routes
from sandbox_proxy.middleware.security import SecurityMiddleware
from sandbox_proxy.services.proxy_service import ProxyService
from sandbox_proxy.services.response_emitter import apply_sandbox_headers
from sandbox_proxy.services.settings_store import SecuritySettingsStore


def create_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    ``upstream_transport`` replaces the network for outbound calls; tests pass
    an ``httpx.MockTransport`` here.
    """

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""

        logger.info(f"Starting {settings.app_name} v{settings.app_version}")

        settings_store = SecuritySettingsStore()
        app.state.settings = settings
        app.state.settings_store = settings_store
        app.state.proxy_service = ProxyService(settings, settings_store, transport=upstream_transport)

        logger.info("Application startup complete")

        yield

        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    if settings.enable_compression:
        app.add_middleware(
            GZipMiddleware,
            minimum_size=settings.min_compression_size,
        )

    app.add_middleware(SecurityMiddleware)

    # Include API routes
    app.include_router(proxy_routes.router, prefix=settings.proxy_prefix, tags=["proxy"])
    if settings.legacy_proxy_prefix:
        app.include_router(proxy_routes.legacy_router, prefix=settings.legacy_proxy_prefix, tags=["proxy-legacy"])
    app.include_router(settings_routes.router, prefix="/api/security-settings", tags=["settings"])
    app.include_router(validation_routes.router, prefix="/api", tags=["validation"])

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "stored_policies": request.app.state.settings_store.get_identity_count(),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
        response = JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
        apply_sandbox_headers(response.headers)
        return response

    return app


# Create app instance
app = create_app()
