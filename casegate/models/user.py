"""User and AuditLog models.

Users authenticate with email/password and receive a pair of JWTs. The only
session state kept server-side is ``token_version``: bumping it invalidates
every refresh token minted before the bump.
AuditLog records authentication events and state-changing operations.
"""

from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class UserRole(str, Enum):
    """Organization-wide roles."""
    ADMIN = "ADMIN"
    COLLABORATOR = "COLLABORATOR"


class ActivityCategory(str, Enum):
    """Audit log categories."""
    AUTH = "AUTH"
    USER = "USER"
    PERMISSION = "PERMISSION"
    SYSTEM = "SYSTEM"


class User(Base):
    """User account (the authenticated principal).

    Roles:
        ADMIN: bypasses every grant check; manages users and grants
        COLLABORATOR: needs jurisdiction and person grants to reach records

    New accounts start with a temporary password and ``is_first_login=True``
    until the user changes it.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.COLLABORATOR.value)
    is_active = Column(Boolean, nullable=False, default=True)
    is_first_login = Column(Boolean, nullable=False, default=True)
    is_profile_completed = Column(Boolean, nullable=False, default=False)
    token_version = Column(Integer, nullable=False, default=0)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    jurisdiction_grants = relationship(
        "JurisdictionGrant",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="[JurisdictionGrant.user_id]",
    )
    person_grants = relationship(
        "PersonGrant",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="[PersonGrant.user_id]",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class AuditLog(Base):
    """Append-only record of authentication events and state changes.

    Fields:
        action: LOGIN, LOGIN_FAILED, LOGOUT, SESSION_EXPIRED,
            UNAUTHORIZED_ACCESS, TOKEN_REFRESHED, USER_CREATED,
            PASSWORD_CHANGED, ROLE_CHANGED, USER_ACTIVATED,
            USER_DEACTIVATED, USER_DELETED, GRANT_UPDATED,
            GRANT_REVOKED, ERROR
        category: AUTH, USER, PERMISSION, SYSTEM
        target_id: id of the affected user or resource
        details: JSON string with the entry's metadata
    """

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    category = Column(String(20), nullable=False, default=ActivityCategory.SYSTEM.value)
    target_id = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
