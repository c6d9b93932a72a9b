"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from .database import get_db, init_db, SessionLocal, DATABASE_URL
from .api import activity_router, auth_router, jurisdictions_router, permissions_router, persons_router
from .core.auth import HEADER_KEEP_ALIVE, SESSION_HEADERS
from .core.config import settings, ConfigurationError
from .core.logging_config import setup_logging
from .core.seeder import seed_admin_user
from .middleware.exception_handler import (
    casegate_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .middleware.request_context import RequestContextMiddleware
from .exceptions import CaseGateException
from .services import audit_service

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the CaseGate API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.is_development:
        if settings.uses_default_secrets():
            logger.warning(
                "SECURITY: JWT secrets are the built-in defaults. Anyone can forge tokens. "
                "Generate secure keys: openssl rand -hex 32"
            )
        origins = settings.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            logger.warning(
                "CORS allows localhost origins: %s. Remove these for production.",
                localhost_origins,
            )

    logger.info(f"Connecting to database: {_mask_url(DATABASE_URL)}")
    init_db()

    # --- Bootstrap administrator ---
    db = SessionLocal()
    try:
        seed_admin_user(db)
    except Exception as e:
        logger.warning(f"Admin seed failed (non-fatal): {e}")
    finally:
        db.close()

    # --- Purge old audit logs ---
    if settings.audit_retention_days > 0:
        db = SessionLocal()
        try:
            purged = audit_service.purge_old_entries(db, days=settings.audit_retention_days)
            if purged > 0:
                logger.info(f"Purged {purged} audit log entries older than {settings.audit_retention_days} days")
        finally:
            db.close()

    yield


app = FastAPI(
    title="CaseGate API",
    description=(
        "Authentication, session lifecycle and authorization for the legal case "
        "management backend.\n\n"
        "**Authentication:** every endpoint except login, refresh and the health probes "
        "requires a `Bearer` access token. Renewed tokens come back in the `Authorization` "
        "response header; inactivity warnings in `X-Session-Warning` / `X-Time-Remaining`."
    ),
    version=VERSION,
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID", HEADER_KEEP_ALIVE],
    expose_headers=SESSION_HEADERS + ["X-Request-ID", "Retry-After"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(CaseGateException, casegate_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(auth_router)
app.include_router(permissions_router)
app.include_router(jurisdictions_router)
app.include_router(persons_router)
app.include_router(activity_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "CaseGate API",
        "version": VERSION,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint returning database status and uptime.

    Never raises; returns degraded status on DB failure so load balancers
    can still probe without receiving 5xx.
    """
    db_status = "ok"
    user_count = 0
    try:
        db.execute(text("SELECT 1"))
        user_count = db.execute(text("SELECT COUNT(*) FROM users")).scalar() or 0
    except Exception:
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": VERSION,
        "user_count": user_count,
    }
