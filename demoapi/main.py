"""
demo-web-service

FastAPI application factory.
Mounts routers, configures middleware, logging, and exception handlers.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from demoapi.api import health, home, users, version
from demoapi.config import Settings, get_settings
from demoapi.errors import (
    APIError,
    api_error_handler,
    http_exception_handler,
    validation_exception_handler,
)
from demoapi.faults.policy import FaultPolicy, NoFaults, RandomFaults
from demoapi.middleware import RecoveryMiddleware, RequestLoggingMiddleware

logger = logging.getLogger("demoapi")


def configure_logging(settings: Settings) -> None:
    """Set up structured logging for the application."""
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(settings.effective_log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Our access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup logic runs before ``yield``, shutdown logic runs after.
    """
    build = version.get_build_info()
    logger.info(
        "Starting application | version=%s | module=%s | pythonVersion=%s",
        build.version,
        build.module,
        build.python_version,
    )
    yield
    logger.info("Application stopped | module=%s", build.module)


def create_app(
    settings: Settings | None = None, fault_policy: FaultPolicy | None = None
) -> FastAPI:
    """
    Build and configure the FastAPI application.

    ``fault_policy`` defaults to ``NoFaults`` in test mode and
    ``RandomFaults`` otherwise.
    """
    settings = settings or get_settings()
    if fault_policy is None:
        fault_policy = NoFaults() if settings.test_mode else RandomFaults()

    app = FastAPI(
        title=settings.app_name,
        version=version.get_build_info().version,
        description="Demonstration API: request logging, fault recovery and graceful shutdown.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.fault_policy = fault_policy

    # --- Exception Handlers ---
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # --- Middleware (order matters: last added = first executed) ---
    app.add_middleware(RecoveryMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # --- Routers ---
    app.include_router(home.router)
    app.include_router(health.router)
    app.include_router(version.router)
    app.include_router(users.router)

    logger.debug(
        "Application built | test_mode=%s | fault_policy=%s",
        settings.test_mode,
        type(fault_policy).__name__,
    )
    return app
