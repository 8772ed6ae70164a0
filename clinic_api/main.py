"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth.router import router as auth_router
from .auth.tenant_router import router as tenant_auth_router
from .config import Settings, get_settings
from .container import ServiceContainer, get_container
from .core.middleware import setup_middlewares
from .exceptions import register_exception_handlers
from .tenants.router import router as organizations_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; read from the environment when omitted
        container: Pre-built services; built from ``settings`` when omitted

    Returns:
        FastAPI: Configured application
    """
    settings = settings or (container.settings if container else get_settings())
    settings.validate_for_production()
    container = container or ServiceContainer.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Clinic API...")
        container.startup()
        yield
        container.shutdown()

    app = FastAPI(
        title="Clinic API",
        description="Multi-tenant API for the clinic platform",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Register exception handlers
    register_exception_handlers(app)

    # Setup custom middleware
    setup_middlewares(app, settings)

    # Central routes first; the tenant router matches any first path segment
    app.include_router(auth_router)
    app.include_router(organizations_router)

    @app.get("/")
    def root():
        """
        Root endpoint for API health check.

        Returns:
            dict: Simple welcome message
        """
        return {"message": "Welcome to Clinic API"}

    @app.get("/health")
    def health_check(container: ServiceContainer = Depends(get_container)):
        """
        Health check endpoint for monitoring.

        Returns:
            dict: Health status information
        """
        try:
            with container.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            database = "connected"
        except SQLAlchemyError:
            logger.exception("Health check could not reach the registry database")
            database = "unavailable"
        return {"status": "healthy" if database == "connected" else "degraded", "database": database}

    app.include_router(tenant_auth_router)
    return app


app = create_app()
