"""Grant store: jurisdiction- and person-tier permission rows.

Upserts honour the one-row-per-(user, resource) rule: an existing row is
updated in place rather than duplicated.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.grant import JurisdictionGrant, PersonGrant


class GrantRepository:
    def __init__(self, db: Session):
        self.db = db

    # -- lookups ---------------------------------------------------------

    def find_collection_grant(self, user_id: int, jurisdiction_id: int) -> Optional[JurisdictionGrant]:
        return (
            self.db.query(JurisdictionGrant)
            .filter(
                JurisdictionGrant.user_id == user_id,
                JurisdictionGrant.jurisdiction_id == jurisdiction_id,
            )
            .first()
        )

    def find_item_grant(self, user_id: int, person_id: int) -> Optional[PersonGrant]:
        return (
            self.db.query(PersonGrant)
            .filter(PersonGrant.user_id == user_id, PersonGrant.person_id == person_id)
            .first()
        )

    def list_for_user(self, user_id: int) -> tuple[list[JurisdictionGrant], list[PersonGrant]]:
        collection_grants = (
            self.db.query(JurisdictionGrant)
            .filter(JurisdictionGrant.user_id == user_id)
            .order_by(JurisdictionGrant.jurisdiction_id)
            .all()
        )
        item_grants = (
            self.db.query(PersonGrant)
            .filter(PersonGrant.user_id == user_id)
            .order_by(PersonGrant.person_id)
            .all()
        )
        return collection_grants, item_grants

    # -- writes ----------------------------------------------------------

    def upsert_collection_grant(
        self,
        user_id: int,
        jurisdiction_id: int,
        can_view: bool,
        can_create: bool,
        can_edit: bool,
    ) -> JurisdictionGrant:
        grant = self.find_collection_grant(user_id, jurisdiction_id)
        if grant is None:
            grant = JurisdictionGrant(user_id=user_id, jurisdiction_id=jurisdiction_id)
            self.db.add(grant)
        grant.can_view = can_view
        grant.can_create = can_create
        grant.can_edit = can_edit
        self.db.commit()
        self.db.refresh(grant)
        return grant

    def upsert_item_grant(
        self,
        user_id: int,
        person_id: int,
        jurisdiction_id: int,
        can_view: bool,
        can_create: bool,
        can_edit: bool,
    ) -> PersonGrant:
        grant = self.find_item_grant(user_id, person_id)
        if grant is None:
            grant = PersonGrant(user_id=user_id, person_id=person_id)
            self.db.add(grant)
        grant.jurisdiction_id = jurisdiction_id
        grant.can_view = can_view
        grant.can_create = can_create
        grant.can_edit = can_edit
        self.db.commit()
        self.db.refresh(grant)
        return grant

    def delete_collection_grant(self, user_id: int, jurisdiction_id: int) -> bool:
        """Remove a jurisdiction grant. Returns True if a row was removed."""
        grant = self.find_collection_grant(user_id, jurisdiction_id)
        if grant is None:
            return False
        self.db.delete(grant)
        self.db.commit()
        return True

    def delete_item_grant(self, user_id: int, person_id: int) -> bool:
        grant = self.find_item_grant(user_id, person_id)
        if grant is None:
            return False
        self.db.delete(grant)
        self.db.commit()
        return True

    def delete_all_for_user(self, user_id: int) -> int:
        """Remove every grant held by *user_id* without committing."""
        removed = self.db.query(PersonGrant).filter(PersonGrant.user_id == user_id).delete()
        removed += self.db.query(JurisdictionGrant).filter(JurisdictionGrant.user_id == user_id).delete()
        return removed
