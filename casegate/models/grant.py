"""Collection- and item-tier permission grants.

JurisdictionGrant gives a user rights over a whole jurisdiction; PersonGrant
gives rights over one person record. A PersonGrant alone is never enough:
the jurisdiction grant with ``can_view`` must also be present, and the
permission engine checks it first.
"""

from sqlalchemy import Column, DateTime, Boolean, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class JurisdictionGrant(Base):
    __tablename__ = "jurisdiction_grants"
    __table_args__ = (UniqueConstraint("user_id", "jurisdiction_id", name="uq_jurisdiction_grant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    jurisdiction_id = Column(
        Integer, ForeignKey("jurisdictions.id", ondelete="CASCADE"), nullable=False
    )
    can_view = Column(Boolean, nullable=False, default=False)
    can_create = Column(Boolean, nullable=False, default=False)
    can_edit = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="jurisdiction_grants", foreign_keys=[user_id])

    def flags(self) -> dict:
        return {"can_view": self.can_view, "can_create": self.can_create, "can_edit": self.can_edit}


class PersonGrant(Base):
    __tablename__ = "person_grants"
    __table_args__ = (UniqueConstraint("user_id", "person_id", name="uq_person_grant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    # Denormalized from persons.jurisdiction_id at grant time.
    jurisdiction_id = Column(
        Integer, ForeignKey("jurisdictions.id", ondelete="CASCADE"), nullable=False
    )
    can_view = Column(Boolean, nullable=False, default=False)
    can_create = Column(Boolean, nullable=False, default=False)
    can_edit = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="person_grants", foreign_keys=[user_id])

    def flags(self) -> dict:
        return {"can_view": self.can_view, "can_create": self.can_create, "can_edit": self.can_edit}
