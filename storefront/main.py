"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.api.middleware.error_handler import error_handler_middleware
from storefront.api.middleware.latency_logging import latency_logging_middleware
from storefront.api.routes import admin, health, store, webhooks
from storefront.api.routes.checkout import orders_router, router as checkout_router
from storefront.core.config import get_settings
from storefront.core.supabase import get_supabase_client
from storefront.services.container import Services, build_services

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the service graph once, unless one was injected into
    create_app, and keeps it on app.state for the route dependencies.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings, get_supabase_client())
        logger.info("Services initialized")

    configured = {method: gateway.configured for method, gateway in app.state.services.gateways.items()}
    for method, is_configured in configured.items():
        if not is_configured:
            logger.warning("Payment method %s has no credentials and will be unavailable", method)

    yield
    logger.info("Shutting down %s", settings.app_name)


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Pre-built services (tests); built in the lifespan otherwise.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Storefront API",
        description="Digital-goods storefront: checkout, payments, fulfillment and back office",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (outermost - catches all errors)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (tracks request timing)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Create API v1 router for versioned endpoints
    api_v1_router = APIRouter(prefix="/api/v1")

    # Checkout and orders routes
    api_v1_router.include_router(checkout_router)
    api_v1_router.include_router(orders_router)

    # Webhook routes
    api_v1_router.include_router(webhooks.router)

    # Public settings and change stream
    api_v1_router.include_router(store.router)

    # Back office
    api_v1_router.include_router(admin.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
