"""Exception handlers that turn every failure into the error envelope.

    {"status": "error", "message": ..., "error": {"code", "message", "details"}}
"""

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..database import SessionLocal
from ..exceptions import CaseGateException, ErrorCode
from ..models.user import ActivityCategory
from ..services import audit_service

logger = logging.getLogger(__name__)


def _envelope(message: str, code: ErrorCode, details=None) -> dict:
    error = {"code": code.value, "message": message}
    if details:
        error["details"] = details
    return {"status": "error", "message": message, "error": error}


async def casegate_exception_handler(request: Request, exc: CaseGateException) -> JSONResponse:
    """Render a CaseGateException with its own status code, carrying over any
    session headers the auth dependency produced before the failure."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"CaseGateException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=getattr(request.state, "session_headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, paths and queries are a 400, not FastAPI's 422."""
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "errors": errors})
    return JSONResponse(
        status_code=400,
        content=_envelope("Invalid request", ErrorCode.VALIDATION_ERROR, {"errors": errors}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log, try to audit, and answer 500.

    The traceback is only returned to the client in development.
    """
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )

    db = SessionLocal()
    try:
        audit_service.log(
            db,
            user_id=None,
            action="ERROR",
            category=ActivityCategory.SYSTEM,
            description=f"{type(exc).__name__}: {exc}",
            metadata={"path": request.url.path, "method": request.method},
        )
    finally:
        db.close()

    details = None
    if settings.is_development:
        details = {"traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)}
    return JSONResponse(
        status_code=500,
        content=_envelope("Internal server error", ErrorCode.INTERNAL_ERROR, details),
    )
