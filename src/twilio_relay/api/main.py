"""
FastAPI application factory for the Twilio relay.
Health reporting, the webhook router, route fallback and middleware.
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config.settings import RelaySettings
from ..core.middleware import setup_middleware
from ..webhooks.api import create_webhook_router
from ..webhooks.forwarder import WebhookForwarder
from ..webhooks.models import HealthStatus, utc_timestamp

AVAILABLE_ROUTES = ["/health", "/twilio-webhook"]


def get_settings(request: Request) -> RelaySettings:
    """Settings injected at startup; never re-read from the environment."""
    return request.app.state.settings


def create_health_router() -> APIRouter:
    """Create the liveness router."""
    router = APIRouter(tags=["health"])

    @router.get("/health", response_model=HealthStatus)
    async def health_check(
        settings: RelaySettings = Depends(get_settings),
    ) -> HealthStatus:
        """Process liveness, current time and the configured main app URL."""
        return HealthStatus(
            status="healthy",
            timestamp=utc_timestamp(),
            main_app_url=settings.main_app_url,
        )

    return router


async def route_not_found_handler(
    request: Request, exc: StarletteHTTPException
):
    """Unmatched path or method: list the routes this service serves."""
    if exc.status_code in (404, 405):
        return JSONResponse(
            status_code=404,
            content={"error": "Route not found", "availableRoutes": AVAILABLE_ROUTES},
        )
    return await http_exception_handler(request, exc)


def create_app(
    settings: RelaySettings,
    forwarder: WebhookForwarder | None = None,
) -> FastAPI:
    """
    Create the relay application.

    Args:
        settings: Loaded, validated settings
        forwarder: Forwarder override (defaults to one built from settings)

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown events."""
        logger.info("🚀 Twilio relay running on port {}", settings.port)
        logger.info("📡 Main app URL: {}", settings.main_app_url)
        logger.info(
            "🔧 Debug mode: {}", "enabled" if settings.debug_mode else "disabled"
        )
        logger.info("📋 Available endpoints:")
        logger.info("   GET  /health - Health check")
        logger.info("   POST /twilio-webhook - Twilio webhook handler")
        yield
        logger.info("🛑 Twilio relay shutting down")

    app = FastAPI(
        title="Twilio Relay",
        description="Acknowledges Twilio webhooks and forwards them to the main app",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.forwarder = forwarder or WebhookForwarder.from_settings(settings)

    setup_middleware(app, settings)

    app.add_exception_handler(StarletteHTTPException, route_not_found_handler)

    app.include_router(create_health_router())
    app.include_router(create_webhook_router())

    return app
