"""Route guards: FastAPI dependencies that put the permission engine in
front of jurisdiction and person endpoints.

Each factory takes the action and returns a dependency that loads the target
(404 if missing), describes the request to ``permission_service.authorize``
and hands the loaded row to the endpoint. Path ids are typed ``int`` so a
malformed id is a 400 before any lookup happens.
"""

from fastapi import Depends, Path
from sqlalchemy.orm import Session

from .auth import AuthContext, require_profile_completion
from ..database import get_db
from ..models.resource import Jurisdiction, Person
from ..repositories.grant_repository import GrantRepository
from ..repositories.resource_repository import JurisdictionRepository, PersonRepository
from ..services.permission_service import AccessRequest, Action, authorize


def guard_new_jurisdiction():
    """Creating a jurisdiction has no collection to check against."""

    def _dependency(
        auth: AuthContext = Depends(require_profile_completion),
        db: Session = Depends(get_db),
    ) -> AuthContext:
        authorize(auth, AccessRequest(action=Action.CREATE), GrantRepository(db))
        return auth

    return _dependency


def guard_jurisdiction(action: Action):
    """Collection-scoped access: view/edit/delete the jurisdiction itself, or
    create a person inside it."""

    def _dependency(
        jurisdiction_id: int = Path(..., ge=1),
        auth: AuthContext = Depends(require_profile_completion),
        db: Session = Depends(get_db),
    ) -> Jurisdiction:
        jurisdiction = JurisdictionRepository(db).get_by_id(jurisdiction_id)
        authorize(
            auth,
            AccessRequest(action=action, collection_id=jurisdiction.id),
            GrantRepository(db),
        )
        return jurisdiction

    return _dependency


def guard_person(action: Action):
    """Item-scoped access to one person record."""

    def _dependency(
        person_id: int = Path(..., ge=1),
        auth: AuthContext = Depends(require_profile_completion),
        db: Session = Depends(get_db),
    ) -> Person:
        person = PersonRepository(db).get_by_id(person_id)
        authorize(
            auth,
            AccessRequest(
                action=action,
                collection_id=person.jurisdiction_id,
                item_id=person.id,
                item_creator_id=person.created_by,
            ),
            GrantRepository(db),
        )
        return person

    return _dependency
