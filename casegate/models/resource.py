"""Jurisdiction and Person models: the two tiers of protected resources.

A Jurisdiction (cantón) is a collection; every Person record belongs to
exactly one Jurisdiction. Only the columns the authorization engine reads
are modelled here: identity, parent collection, and creator.
"""

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Jurisdiction(Base):
    __tablename__ = "jurisdictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    persons = relationship("Person", back_populates="jurisdiction", cascade="all, delete-orphan")


class Person(Base):
    """A person record. ``created_by`` grants its creator edit rights without
    a per-person grant, as long as the jurisdiction grant is held."""

    __tablename__ = "persons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    jurisdiction_id = Column(
        Integer,
        ForeignKey("jurisdictions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    full_name = Column(String(255), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    jurisdiction = relationship("Jurisdiction", back_populates="persons")
