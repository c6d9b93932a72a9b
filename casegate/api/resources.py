"""Jurisdiction and person endpoints, guarded by the permission engine.

The guards in ``core.guards`` load the target row and authorize the request
before the handler runs; handlers only do the write.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_profile_completion
from ..core.guards import guard_jurisdiction, guard_new_jurisdiction, guard_person
from ..database import get_db
from ..exceptions import ConflictError
from ..models.resource import Jurisdiction, Person
from ..repositories.resource_repository import JurisdictionRepository, PersonRepository
from ..schemas.common import ApiResponse, success
from ..schemas.resource import (
    JurisdictionCreate,
    JurisdictionResponse,
    JurisdictionUpdate,
    PersonCreate,
    PersonResponse,
    PersonUpdate,
)
from ..services.permission_service import Action

logger = logging.getLogger(__name__)

jurisdictions_router = APIRouter(prefix="/api/jurisdictions", tags=["Jurisdictions"])
persons_router = APIRouter(prefix="/api/persons", tags=["Persons"])


def _jurisdiction(row: Jurisdiction) -> dict:
    return JurisdictionResponse.model_validate(row).model_dump(by_alias=True)


def _person(row: Person) -> dict:
    return PersonResponse.model_validate(row).model_dump(by_alias=True)


# --- Jurisdictions ---


@jurisdictions_router.post("", response_model=ApiResponse[JurisdictionResponse], status_code=201)
def create_jurisdiction(
    body: JurisdictionCreate,
    auth: AuthContext = Depends(guard_new_jurisdiction()),
    db: Session = Depends(get_db),
):
    repo = JurisdictionRepository(db)
    if repo.get_by_name(body.name) is not None:
        raise ConflictError(f"Jurisdiction '{body.name}' already exists", field="name")
    jurisdiction = repo.create(body.name, created_by=auth.user_id)
    logger.info("Jurisdiction created", extra={"jurisdiction_id": jurisdiction.id})
    return success(_jurisdiction(jurisdiction), message="Jurisdiction created")


@jurisdictions_router.get("/{jurisdiction_id}", response_model=ApiResponse[JurisdictionResponse])
def get_jurisdiction(jurisdiction: Jurisdiction = Depends(guard_jurisdiction(Action.VIEW))):
    return success(_jurisdiction(jurisdiction))


@jurisdictions_router.put("/{jurisdiction_id}", response_model=ApiResponse[JurisdictionResponse])
def update_jurisdiction(
    body: JurisdictionUpdate,
    jurisdiction: Jurisdiction = Depends(guard_jurisdiction(Action.EDIT)),
    db: Session = Depends(get_db),
):
    existing = JurisdictionRepository(db).get_by_name(body.name)
    if existing is not None and existing.id != jurisdiction.id:
        raise ConflictError(f"Jurisdiction '{body.name}' already exists", field="name")
    jurisdiction.name = body.name
    db.commit()
    db.refresh(jurisdiction)
    return success(_jurisdiction(jurisdiction))


@jurisdictions_router.get(
    "/{jurisdiction_id}/persons", response_model=ApiResponse[List[PersonResponse]]
)
def list_persons(
    jurisdiction: Jurisdiction = Depends(guard_jurisdiction(Action.VIEW)),
    auth: AuthContext = Depends(require_profile_completion),
    db: Session = Depends(get_db),
):
    # Collaborators only see persons they created or hold a view grant for.
    visible_to = None if auth.is_admin else auth.user_id
    persons = PersonRepository(db).list_in_jurisdiction(jurisdiction.id, visible_to=visible_to)
    return success([_person(p) for p in persons])


@jurisdictions_router.post(
    "/{jurisdiction_id}/persons",
    response_model=ApiResponse[PersonResponse],
    status_code=201,
)
def create_person(
    body: PersonCreate,
    jurisdiction: Jurisdiction = Depends(guard_jurisdiction(Action.CREATE)),
    auth: AuthContext = Depends(require_profile_completion),
    db: Session = Depends(get_db),
):
    person = PersonRepository(db).create(jurisdiction.id, body.full_name, created_by=auth.user_id)
    return success(_person(person), message="Person created")


# --- Persons ---


@persons_router.get("/{person_id}", response_model=ApiResponse[PersonResponse])
def get_person(person: Person = Depends(guard_person(Action.VIEW))):
    return success(_person(person))


@persons_router.put("/{person_id}", response_model=ApiResponse[PersonResponse])
def update_person(
    body: PersonUpdate,
    person: Person = Depends(guard_person(Action.EDIT)),
    db: Session = Depends(get_db),
):
    person.full_name = body.full_name
    db.commit()
    db.refresh(person)
    return success(_person(person))


@persons_router.delete("/{person_id}", response_model=ApiResponse[dict])
def delete_person(
    person: Person = Depends(guard_person(Action.DELETE)),
    db: Session = Depends(get_db),
):
    PersonRepository(db).delete(person)
    return success(message="Person deleted")
