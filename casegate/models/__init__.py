"""Database models."""

from .user import User, AuditLog, UserRole, ActivityCategory
from .resource import Jurisdiction, Person
from .grant import JurisdictionGrant, PersonGrant

__all__ = [
    "User", "AuditLog", "UserRole", "ActivityCategory",
    "Jurisdiction", "Person",
    "JurisdictionGrant", "PersonGrant",
]
