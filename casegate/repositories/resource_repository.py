"""Jurisdiction and person lookups used by route guards and handlers."""

from typing import Optional

from sqlalchemy import or_, select

from ..models.grant import PersonGrant
from ..models.resource import Jurisdiction, Person
from .base import BaseRepository


class JurisdictionRepository(BaseRepository[Jurisdiction]):
    model_class = Jurisdiction
    resource_type = "jurisdiction"

    def get_by_name(self, name: str) -> Optional[Jurisdiction]:
        return self.db.query(Jurisdiction).filter(Jurisdiction.name == name).first()

    def create(self, name: str, created_by: Optional[int]) -> Jurisdiction:
        jurisdiction = Jurisdiction(name=name, created_by=created_by)
        self.db.add(jurisdiction)
        self.db.commit()
        self.db.refresh(jurisdiction)
        return jurisdiction


class PersonRepository(BaseRepository[Person]):
    model_class = Person
    resource_type = "person"

    def list_in_jurisdiction(
        self, jurisdiction_id: int, visible_to: Optional[int] = None
    ) -> list[Person]:
        """Persons filed under a jurisdiction.

        With ``visible_to`` set, only rows that user created or holds a
        PersonGrant with ``can_view`` for are returned.
        """
        query = self.db.query(Person).filter(Person.jurisdiction_id == jurisdiction_id)
        if visible_to is not None:
            granted = select(PersonGrant.person_id).where(
                PersonGrant.user_id == visible_to, PersonGrant.can_view.is_(True)
            )
            query = query.filter(
                or_(Person.created_by == visible_to, Person.id.in_(granted))
            )
        return query.order_by(Person.id).all()

    def create(self, jurisdiction_id: int, full_name: str, created_by: Optional[int]) -> Person:
        person = Person(jurisdiction_id=jurisdiction_id, full_name=full_name, created_by=created_by)
        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)
        return person

    def delete(self, person: Person) -> None:
        self.db.delete(person)
        self.db.commit()
