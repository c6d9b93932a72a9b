"""Audit logging service: best-effort, append-only activity log.

Writes never raise: a failing audit write is reported to the application
logger and the caller carries on. Delivery is at-most-once; entries
scheduled with ``log_detached`` run after the response has been sent.

Usage:
    audit_service.log(db, user_id=7, action="GRANT_UPDATED",
                      category=ActivityCategory.PERMISSION, target_id="3",
                      metadata={"before": None, "after": {...}})
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.user import AuditLog, ActivityCategory

logger = logging.getLogger(__name__)


def log(
    db: Session,
    user_id: Optional[int],
    action: str,
    category: Union[ActivityCategory, str] = ActivityCategory.SYSTEM,
    target_id: Optional[Any] = None,
    description: Optional[str] = None,
    metadata: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> None:
    """Append an audit entry. Never raises; failures are logged and rolled back."""
    try:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            category=category.value if isinstance(category, ActivityCategory) else str(category),
            target_id=str(target_id) if target_id is not None else None,
            description=description,
            details=json.dumps(metadata, default=str) if metadata else None,
            ip_address=ip_address,
        )
        db.add(entry)
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to write audit log: %s", e, extra={"audit_action": action})
        try:
            db.rollback()
        except sqlalchemy.exc.SQLAlchemyError:
            logger.debug("Rollback after audit failure also failed", exc_info=True)


def log_detached(**entry: Any) -> None:
    """Write an audit entry on a private session.

    Meant for ``BackgroundTasks.add_task``: the request's session is closed
    by the time background tasks run.
    """
    db = SessionLocal()
    try:
        log(db, **entry)
    finally:
        db.close()


def get_recent(
    db: Session,
    limit: int = 100,
    category: Optional[str] = None,
    user_id: Optional[int] = None,
) -> list[AuditLog]:
    """Most recent entries first, optionally filtered by category or actor."""
    query = db.query(AuditLog)
    if category:
        query = query.filter(AuditLog.category == category.upper())
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    return (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def purge_old_entries(db: Session, days: int = 365) -> int:
    """Delete audit log entries older than `days`. Returns count of deleted rows.

    Skipped when days <= 0 (keep forever). Never raises; logs failures.
    """
    if days <= 0:
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    try:
        count = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete()
        db.commit()
        return count
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge audit log: %s", e)
        db.rollback()
        return 0


def decode_details(entry: AuditLog) -> dict:
    """Parse the stored JSON details; malformed rows yield an empty dict."""
    if not entry.details:
        return {}
    try:
        return json.loads(entry.details)
    except (TypeError, ValueError):
        return {}
