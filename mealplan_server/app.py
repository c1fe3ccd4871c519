"""
Meal subscription backend - application entry point.

Modules:
- subscription lifecycle (state machine, payments, sweeps)
- kitchen demand (daily preparation list, upcoming days, month calendar)
- diagnostics for the kitchen numbers
- admin pipeline summary

Stack: FastAPI + DuckDB + pydantic
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .config.settings import Settings, settings as default_settings
from .core.clock import Clock
from .core.database import DatabaseManager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .services import build_services

logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None, clock: Optional[Clock] = None,
               db: Optional[DatabaseManager] = None) -> FastAPI:
    """Build the FastAPI app; settings, clock and database can be overridden"""
    app_settings = app_settings or default_settings
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    db = db or DatabaseManager(app_settings=app_settings)
    services = build_services(db, clock, app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_database()
        yield
        db.close()

    app = FastAPI(
        title=app_settings.api_title,
        version=app_settings.api_version,
        description="Meal subscription lifecycle and kitchen demand API",
        debug=app_settings.debug,
        lifespan=lifespan
    )
    app.state.settings = app_settings
    app.state.db = db
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=app_settings.api_prefix)

    @app.get("/health")
    def health_check():
        try:
            db.execute_one("SELECT 1")
        except BaseApplicationError as e:
            logger.error("Health check failed: %s", e.message)
            return {
                "status": "unhealthy",
                "version": app_settings.api_version,
                "database": f"error: {e.message}"
            }
        return {
            "status": "healthy",
            "version": app_settings.api_version,
            "database": "connected"
        }

    @app.get("/")
    def root():
        return {
            "name": app_settings.api_title,
            "version": app_settings.api_version,
            "description": "Meal subscription lifecycle and kitchen demand API"
        }

    return app
