"""Admin activity feed over the audit log."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_admin
from ..database import get_db
from ..schemas.auth import ActivityEntry
from ..schemas.common import ApiResponse, success
from ..services import audit_service

router = APIRouter(prefix="/api/activity", tags=["Activity"])


@router.get("", response_model=ApiResponse[List[ActivityEntry]])
def recent_activity(
    limit: int = Query(100, ge=1, le=500),
    category: Optional[str] = Query(None, description="AUTH, USER, PERMISSION or SYSTEM"),
    user_id: Optional[int] = Query(None, alias="userId"),
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entries = audit_service.get_recent(db, limit=limit, category=category, user_id=user_id)
    return success([
        ActivityEntry(
            id=e.id,
            user_id=e.user_id,
            action=e.action,
            category=e.category,
            target_id=e.target_id,
            description=e.description,
            details=audit_service.decode_details(e),
            ip_address=e.ip_address,
            created_at=e.created_at,
        ).model_dump(by_alias=True, mode="json")
        for e in entries
    ])
