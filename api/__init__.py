"""REST API module for MapIt.

This module provides HTTP endpoints for:
- Customer registration and login, admin login
- Creating and managing maps
- Drawing zones on maps, one at a time or in bulk
- Packages and package orders
- Admin dashboard listings and statistics
- System health

The connection pool lives on ``app.state.pool``. When ``create_app`` is
given a pool the caller owns it; otherwise the app opens one on startup and
closes it on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from asyncpg.pool import Pool
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings_conf
from database import init_db, close as db_close

from .errors import register_exception_handlers
from .middleware import LoggingMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"

def create_app(pool: Optional[Pool] = None, settings: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        pool: Optional database pool. If not provided, one is created on startup.
        settings: Optional settings dict, defaults to the loaded settings.conf

    Returns:
        Configured FastAPI app
    """
    settings = settings if settings is not None else settings_conf
    owns_pool = pool is None

    # Lifecycle management
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        # Startup
        logger.info(f"Initializing API ({settings['environment']})...")
        if owns_pool:
            app.state.pool = await init_db(settings=settings)
            logger.info("Database pool ready")

        yield

        # Shutdown
        logger.info("Shutting down API...")
        if owns_pool:
            await db_close(app.state.pool)
            app.state.pool = None

    app = FastAPI(
        title="MapIt API",
        description="REST API for MapIt maps, zones, customers and packages",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.pool = pool
    app.state.settings = settings

    register_exception_handlers(app)

    app.add_middleware(LoggingMiddleware, prefix=API_PREFIX)

    # Configure CORS
    origins = settings.get('cors_origins') or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Import and include all routers
    from .auth import router as auth_router
    from .maps import router as maps_router
    from .customers import router as customers_router
    from .zones import router as zones_router
    from .orders import router as orders_router
    from .admin import router as admin_router
    from .system import router as system_router

    app.include_router(system_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(maps_router, prefix=API_PREFIX)
    app.include_router(customers_router, prefix=API_PREFIX)
    app.include_router(zones_router, prefix=API_PREFIX)
    app.include_router(orders_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)

    return app

app = create_app()
