"""Grant management: assign and revoke jurisdiction and person grants.

Every change writes a PERMISSION audit entry capturing the grant row before
and after the change (``None`` when the row did not exist / was removed).
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.grant import JurisdictionGrant, PersonGrant
from ..models.user import ActivityCategory
from ..repositories.grant_repository import GrantRepository
from ..repositories.resource_repository import JurisdictionRepository, PersonRepository
from ..repositories.user_repository import UserRepository
from . import audit_service

logger = logging.getLogger(__name__)


def _snapshot(grant) -> Optional[dict]:
    return grant.flags() if grant is not None else None


def set_jurisdiction_grant(
    db: Session,
    actor_id: int,
    user_id: int,
    jurisdiction_id: int,
    can_view: bool,
    can_create: bool = False,
    can_edit: bool = False,
) -> JurisdictionGrant:
    """Create or update the grant of *user_id* on a jurisdiction.

    Raises NotFoundError if the user or jurisdiction does not exist.
    """
    UserRepository(db).get_by_id(user_id)
    JurisdictionRepository(db).get_by_id(jurisdiction_id)

    grants = GrantRepository(db)
    before = _snapshot(grants.find_collection_grant(user_id, jurisdiction_id))
    grant = grants.upsert_collection_grant(user_id, jurisdiction_id, can_view, can_create, can_edit)

    audit_service.log(
        db,
        user_id=actor_id,
        action="GRANT_UPDATED",
        category=ActivityCategory.PERMISSION,
        target_id=user_id,
        description=f"Jurisdiction {jurisdiction_id} grant updated",
        metadata={
            "scope": "jurisdiction",
            "jurisdiction_id": jurisdiction_id,
            "before": before,
            "after": _snapshot(grant),
        },
    )
    return grant


def set_person_grant(
    db: Session,
    actor_id: int,
    user_id: int,
    person_id: int,
    can_view: bool,
    can_create: bool = False,
    can_edit: bool = False,
) -> PersonGrant:
    """Create or update the grant of *user_id* on one person record.

    The grant's jurisdiction is taken from the person, never from the caller.
    A person grant does nothing unless the user can also view that
    jurisdiction; this is not enforced here so grants can be staged in any
    order.
    """
    UserRepository(db).get_by_id(user_id)
    person = PersonRepository(db).get_by_id(person_id)

    grants = GrantRepository(db)
    before = _snapshot(grants.find_item_grant(user_id, person_id))
    grant = grants.upsert_item_grant(
        user_id, person_id, person.jurisdiction_id, can_view, can_create, can_edit
    )

    if grants.find_collection_grant(user_id, person.jurisdiction_id) is None:
        logger.info(
            "Person grant assigned without a jurisdiction grant",
            extra={"user_id": user_id, "person_id": person_id, "jurisdiction_id": person.jurisdiction_id},
        )

    audit_service.log(
        db,
        user_id=actor_id,
        action="GRANT_UPDATED",
        category=ActivityCategory.PERMISSION,
        target_id=user_id,
        description=f"Person {person_id} grant updated",
        metadata={
            "scope": "person",
            "person_id": person_id,
            "jurisdiction_id": person.jurisdiction_id,
            "before": before,
            "after": _snapshot(grant),
        },
    )
    return grant


def revoke_jurisdiction_grant(db: Session, actor_id: int, user_id: int, jurisdiction_id: int) -> bool:
    """Remove a jurisdiction grant. Returns True if a grant was removed."""
    grants = GrantRepository(db)
    before = _snapshot(grants.find_collection_grant(user_id, jurisdiction_id))
    if before is None:
        return False
    grants.delete_collection_grant(user_id, jurisdiction_id)
    audit_service.log(
        db,
        user_id=actor_id,
        action="GRANT_REVOKED",
        category=ActivityCategory.PERMISSION,
        target_id=user_id,
        description=f"Jurisdiction {jurisdiction_id} grant revoked",
        metadata={"scope": "jurisdiction", "jurisdiction_id": jurisdiction_id, "before": before, "after": None},
    )
    return True


def revoke_person_grant(db: Session, actor_id: int, user_id: int, person_id: int) -> bool:
    grants = GrantRepository(db)
    before = _snapshot(grants.find_item_grant(user_id, person_id))
    if before is None:
        return False
    grants.delete_item_grant(user_id, person_id)
    audit_service.log(
        db,
        user_id=actor_id,
        action="GRANT_REVOKED",
        category=ActivityCategory.PERMISSION,
        target_id=user_id,
        description=f"Person {person_id} grant revoked",
        metadata={"scope": "person", "person_id": person_id, "before": before, "after": None},
    )
    return True


def list_user_grants(db: Session, user_id: int) -> tuple[list[JurisdictionGrant], list[PersonGrant]]:
    UserRepository(db).get_by_id(user_id)
    return GrantRepository(db).list_for_user(user_id)
