"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__
from .api import documents_router
from .core.config import settings, ConfigurationError
from .core.logging_config import setup_logging
from .database import DATABASE_URL, engine, get_db, init_db
from .exceptions import NoteTreeException
from .middleware import RequestContextMiddleware, notetree_exception_handler

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the notetree API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    masked = _mask_url(DATABASE_URL)
    try:
        init_db(engine)
    except SQLAlchemyError as e:
        logger.critical(
            "Database initialisation failed.\n"
            f"  DATABASE_URL: {masked}\n"
            "  Check that the directory exists and is writable.\n"
            f"  Error: {e}"
        )
        raise SystemExit(1) from e
    logger.info(f"Database ready: {masked}")

    yield

    engine.dispose()


app = FastAPI(
    title="notetree API",
    description=(
        "Hierarchical document store for a notes application. Documents form a "
        "tree that can be reordered, reparented, trashed and restored with their "
        "whole subtree, and permanently deleted."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(NoteTreeException, notetree_exception_handler)

app.include_router(documents_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "notetree API",
        "version": __version__,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check returning database status, uptime, and document count.

    Never raises: a database failure is reported as ``degraded`` so probes
    still get a 200.
    """
    db_status = "ok"
    document_count = 0
    try:
        db.execute(text("SELECT 1"))
        document_count = db.execute(text("SELECT COUNT(*) FROM documents")).scalar() or 0
    except SQLAlchemyError:
        logger.warning("Health check database probe failed", exc_info=True)
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": __version__,
        "document_count": document_count,
    }
