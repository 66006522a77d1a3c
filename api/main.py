"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from database.engine import init_db, close_db
from api.routes import health
from api.routes.v1 import (
    auth,
    candidates,
    jobs,
    notifications,
    privacy,
    teams,
)
from api.services import Services, build_services

from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, manage_database: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built collaborators (tests inject their own); built
            from settings at start-up when omitted
        manage_database: Create tables on start-up and dispose the engine
            on shutdown

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
        if manage_database:
            await init_db()

        yield

        logger.info(f"Shutting down {settings.app_name}")
        if manage_database:
            await close_db()

    app = FastAPI(
        title=settings.app_name,
        description="Job board access control, candidate privacy and transparency API",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Built once and shared by every request
    app.state.services = services or build_services()
    app.state.permission_evaluator = app.state.services.evaluator

    # Setup error handlers (before middleware)
    setup_error_handlers(app)

    # Add middleware (order matters - they execute in reverse order)
    # 1. Error handling middleware (outermost - catches all errors)
    app.add_middleware(
        ErrorHandlingMiddleware,
        debug=settings.debug,
    )

    # 2. Structured logging middleware (logs all requests/responses)
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        max_body_size=settings.log_max_body_size,
    )

    # 3. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    for module in (auth, teams, jobs, candidates, privacy, notifications):
        app.include_router(module.router, prefix=settings.api_v1_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
