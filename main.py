"""
Campaign Sheet — Main Application

FastAPI application entry point.
"""

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog
from datetime import datetime

from config import settings, check_connection
from exceptions import AppError

# stdlib logging decides which levels reach structlog's filter_by_level
logging.basicConfig(format="%(message)s", level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: log the item and slot counts the sheets will read from.
    Shutdown: drop open sheets (unsaved edits are lost, as on a reload).
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        log_level=settings.log_level
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            items=db_status["items_count"],
            slots=db_status["slots_count"]
        )
    else:
        logger.error(
            "database_connection_failed",
            error=db_status.get("error")
        )

    yield

    from services.sheet_service import get_sheet_registry
    registry = get_sheet_registry()
    unsaved = [s for s in registry.open_sheets() if s["change_count"]]
    if unsaved:
        logger.warning("open_sheets_with_unsaved_edits", sheets=unsaved)
    registry.clear()
    logger.info("application_shutting_down")


app = FastAPI(
    title="Campaign Sheet",
    description="Grouped slot sheet for review/purchase campaign operations",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Database state plus the sheets currently held in memory
    """
    from services.sheet_service import get_sheet_registry

    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status,
        "open_sheets": get_sheet_registry().open_sheets()
    }


@app.get("/")
async def root():
    """API information and available endpoints."""
    return {
        "name": "Campaign Sheet API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "sheet": "/api/sheets/{campaign_id}",
            "edits": "/api/sheets/{campaign_id}/edits",
            "commit": "/api/sheets/{campaign_id}/commit",
            "export": "/api/sheets/{campaign_id}/export",
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """AppErrors that escape a route keep their status code and error body."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.sheets import router as sheets_router

app.include_router(sheets_router, prefix="/api/sheets", tags=["Sheets"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
