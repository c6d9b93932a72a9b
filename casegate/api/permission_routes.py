"""Grant management API endpoints (admin only).

    GET    /api/permissions/users/{user_id}
    GET    /api/permissions/users/{user_id}/jurisdictions/{jurisdiction_id}
    PUT    /api/permissions/users/{user_id}/jurisdictions/{jurisdiction_id}
    DELETE /api/permissions/users/{user_id}/jurisdictions/{jurisdiction_id}
    GET    /api/permissions/users/{user_id}/persons/{person_id}
    PUT    /api/permissions/users/{user_id}/persons/{person_id}
    DELETE /api/permissions/users/{user_id}/persons/{person_id}
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_admin
from ..database import get_db
from ..exceptions import NotFoundError
from ..repositories.grant_repository import GrantRepository
from ..schemas.common import ApiResponse, success
from ..schemas.permission import (
    GrantFlagsRequest,
    JurisdictionGrantResponse,
    PersonGrantResponse,
    UserGrantsResponse,
)
from ..services import grant_service

router = APIRouter(prefix="/api/permissions", tags=["Permissions"])


def _dump(model, row) -> dict:
    return model.model_validate(row).model_dump(by_alias=True)


@router.get("/users/{user_id}", response_model=ApiResponse[UserGrantsResponse])
def get_user_grants(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every jurisdiction and person grant held by one user."""
    jurisdictions, persons = grant_service.list_user_grants(db, user_id)
    return success({
        "userId": user_id,
        "jurisdictions": [_dump(JurisdictionGrantResponse, g) for g in jurisdictions],
        "persons": [_dump(PersonGrantResponse, g) for g in persons],
    })


@router.get(
    "/users/{user_id}/jurisdictions/{jurisdiction_id}",
    response_model=ApiResponse[JurisdictionGrantResponse],
)
def get_jurisdiction_grant(
    user_id: int,
    jurisdiction_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    grant = GrantRepository(db).find_collection_grant(user_id, jurisdiction_id)
    if grant is None:
        raise NotFoundError("jurisdiction grant", f"{user_id}/{jurisdiction_id}")
    return success(_dump(JurisdictionGrantResponse, grant))


@router.put(
    "/users/{user_id}/jurisdictions/{jurisdiction_id}",
    response_model=ApiResponse[JurisdictionGrantResponse],
)
def set_jurisdiction_grant(
    user_id: int,
    jurisdiction_id: int,
    body: GrantFlagsRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    grant = grant_service.set_jurisdiction_grant(
        db,
        actor_id=auth.user_id,
        user_id=user_id,
        jurisdiction_id=jurisdiction_id,
        can_view=body.can_view,
        can_create=body.can_create,
        can_edit=body.can_edit,
    )
    return success(_dump(JurisdictionGrantResponse, grant), message="Grant updated")


@router.delete(
    "/users/{user_id}/jurisdictions/{jurisdiction_id}",
    response_model=ApiResponse[dict],
)
def revoke_jurisdiction_grant(
    user_id: int,
    jurisdiction_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not grant_service.revoke_jurisdiction_grant(db, auth.user_id, user_id, jurisdiction_id):
        raise NotFoundError("jurisdiction grant", f"{user_id}/{jurisdiction_id}")
    return success(message="Grant revoked")


@router.get(
    "/users/{user_id}/persons/{person_id}",
    response_model=ApiResponse[PersonGrantResponse],
)
def get_person_grant(
    user_id: int,
    person_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    grant = GrantRepository(db).find_item_grant(user_id, person_id)
    if grant is None:
        raise NotFoundError("person grant", f"{user_id}/{person_id}")
    return success(_dump(PersonGrantResponse, grant))


@router.put(
    "/users/{user_id}/persons/{person_id}",
    response_model=ApiResponse[PersonGrantResponse],
)
def set_person_grant(
    user_id: int,
    person_id: int,
    body: GrantFlagsRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    grant = grant_service.set_person_grant(
        db,
        actor_id=auth.user_id,
        user_id=user_id,
        person_id=person_id,
        can_view=body.can_view,
        can_create=body.can_create,
        can_edit=body.can_edit,
    )
    return success(_dump(PersonGrantResponse, grant), message="Grant updated")


@router.delete(
    "/users/{user_id}/persons/{person_id}",
    response_model=ApiResponse[dict],
)
def revoke_person_grant(
    user_id: int,
    person_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not grant_service.revoke_person_grant(db, auth.user_id, user_id, person_id):
        raise NotFoundError("person grant", f"{user_id}/{person_id}")
    return success(message="Grant revoked")
