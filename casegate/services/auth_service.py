"""Authentication service: credential checks, password hashing, user lifecycle.

All password operations use bcrypt via passlib. Passwords are never stored
or logged in plaintext. The service layer owns user lifecycle; endpoints
are thin wrappers.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import ConflictError, ForbiddenError, ValidationError
from ..models.user import ActivityCategory, User, UserRole
from ..repositories.grant_repository import GrantRepository
from ..repositories.user_repository import UserRepository
from . import audit_service

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CredentialOutcome(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    DISABLED = "DISABLED"
    BAD_PASSWORD = "BAD_PASSWORD"


@dataclass(frozen=True)
class CredentialResult:
    """Result of ``verify_credentials``.

    NOT_FOUND and BAD_PASSWORD must look identical to the client; they are
    kept apart here only so the audit trail can tell them apart.
    """
    outcome: CredentialOutcome
    user: Optional[User] = None

    @property
    def ok(self) -> bool:
        return self.outcome == CredentialOutcome.OK


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def check_password(password: str, password_hash: Optional[str]) -> bool:
    """Constant-time bcrypt comparison. A corrupt stored hash never matches."""
    if not password_hash:
        return False
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def verify_credentials(
    db: Session,
    email: str,
    password: str,
    ip_address: Optional[str] = None,
) -> CredentialResult:
    """Check an email/password pair.

    A deactivated account is reported as DISABLED before the password is
    looked at, so the answer does not depend on the password being right.
    """
    normalized = normalize_email(email)
    user = UserRepository(db).find_by_email(normalized) if normalized else None

    if user is None:
        logger.info("Login attempt for unknown email", extra={"email": normalized})
        return CredentialResult(CredentialOutcome.NOT_FOUND)

    if not user.is_active:
        logger.info("Login attempt on disabled account", extra={"user_id": user.id})
        return CredentialResult(CredentialOutcome.DISABLED, user)

    if not check_password(password or "", user.password_hash):
        audit_service.log(
            db,
            user_id=user.id,
            action="LOGIN_FAILED",
            category=ActivityCategory.AUTH,
            target_id=user.id,
            description="Login rejected: wrong password",
            metadata={"reason": CredentialOutcome.BAD_PASSWORD.value},
            ip_address=ip_address,
        )
        return CredentialResult(CredentialOutcome.BAD_PASSWORD, user)

    return CredentialResult(CredentialOutcome.OK, user)


def validate_password_strength(password: str, min_length: Optional[int] = None) -> list[str]:
    """Return the list of unmet password rules (empty when acceptable)."""
    min_length = min_length if min_length is not None else settings.min_password_length
    problems = []
    if len(password) < min_length:
        problems.append(f"Password must be at least {min_length} characters")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain a lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain a digit")
    if not re.search(r"[^A-Za-z0-9]", password):
        problems.append("Password must contain a symbol")
    return problems


def _validate_role(role: str) -> str:
    normalized = (role or "").strip().upper()
    valid = [r.value for r in UserRole]
    if normalized not in valid:
        raise ValidationError(f"Invalid role: {role}. Must be one of {valid}.", field="role")
    return normalized


def register_user(
    db: Session,
    email: str,
    role: str = UserRole.COLLABORATOR.value,
    display_name: Optional[str] = None,
    created_by: Optional[int] = None,
    password: Optional[str] = None,
) -> User:
    """Create an account with the temporary password (or *password* if given).

    The account starts with ``is_first_login=True`` and ``token_version=0``.
    Raises ValidationError on bad input, ConflictError on duplicate email.
    """
    normalized = normalize_email(email)
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("Valid email address required", field="email")
    effective_role = _validate_role(role)

    users = UserRepository(db)
    if users.find_by_email(normalized) is not None:
        raise ConflictError("Email already registered", field="email")

    user = User(
        email=normalized,
        display_name=(display_name or "").strip() or None,
        password_hash=hash_password(password or settings.temporary_password),
        role=effective_role,
        is_active=True,
        is_first_login=True,
        is_profile_completed=False,
        token_version=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User registered", extra={"user_id": user.id, "role": effective_role})
    audit_service.log(
        db,
        user_id=created_by,
        action="USER_CREATED",
        category=ActivityCategory.USER,
        target_id=user.id,
        description=f"User {normalized} created",
        metadata={"role": effective_role, "requires_profile_completion": True},
    )
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    """Replace the user's password and leave first-login mode.

    Bumps token_version so refresh tokens minted with the old password stop
    working; the caller issues a fresh pair.
    """
    if not check_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", field="current_password")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current one", field="new_password")

    problems = validate_password_strength(new_password)
    if problems:
        raise ValidationError(
            "Password does not meet the security requirements",
            field="new_password",
            details={"problems": problems},
        )

    users = UserRepository(db)
    users.update(user.id, password_hash=hash_password(new_password), is_first_login=False)
    users.increment_token_version(user.id)
    db.refresh(user)

    audit_service.log(
        db,
        user_id=user.id,
        action="PASSWORD_CHANGED",
        category=ActivityCategory.AUTH,
        target_id=user.id,
        description="Password changed",
    )
    return user


def complete_profile(db: Session, user: User, display_name: str) -> User:
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("Display name required", field="display_name")
    updated = UserRepository(db).update(user.id, display_name=name, is_profile_completed=True)
    audit_service.log(
        db,
        user_id=user.id,
        action="PROFILE_COMPLETED",
        category=ActivityCategory.USER,
        target_id=user.id,
    )
    return updated


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return UserRepository(db).get_by_id_optional(user_id)


def list_users(db: Session) -> list[User]:
    return UserRepository(db).list_all()


def _ensure_not_last_admin(users: UserRepository, user: User) -> None:
    if user.is_admin and user.is_active and users.count_admins() <= 1:
        raise ForbiddenError("Cannot remove the last active administrator")


def update_user_role(db: Session, user_id: int, new_role: str, actor_id: Optional[int] = None) -> User:
    """Change a user's global role."""
    role = _validate_role(new_role)
    users = UserRepository(db)
    user = users.get_by_id(user_id)
    before = user.role
    if before == role:
        return user
    if before == UserRole.ADMIN.value:
        _ensure_not_last_admin(users, user)

    user = users.update(user_id, role=role)
    audit_service.log(
        db,
        user_id=actor_id,
        action="ROLE_CHANGED",
        category=ActivityCategory.USER,
        target_id=user_id,
        metadata={"before": before, "after": role},
    )
    return user


def set_user_active(db: Session, user_id: int, active: bool, actor_id: Optional[int] = None) -> User:
    """Activate or deactivate an account.

    Deactivation also bumps token_version so outstanding refresh tokens die
    with the account; access tokens are refused by the auth dependency.
    """
    users = UserRepository(db)
    user = users.get_by_id(user_id)
    if user.is_active == active:
        return user
    if not active:
        _ensure_not_last_admin(users, user)

    user = users.update(user_id, is_active=active)
    if not active:
        users.increment_token_version(user_id)
        db.refresh(user)

    audit_service.log(
        db,
        user_id=actor_id,
        action="USER_ACTIVATED" if active else "USER_DEACTIVATED",
        category=ActivityCategory.USER,
        target_id=user_id,
    )
    return user


def delete_user(db: Session, user_id: int, actor_id: Optional[int] = None) -> None:
    """Remove a user and every grant they hold.

    Audit entries keep their history; their user_id is nulled by the
    foreign key.
    """
    users = UserRepository(db)
    user = users.get_by_id(user_id)
    if actor_id is not None and actor_id == user_id:
        raise ForbiddenError("Administrators cannot delete their own account")
    _ensure_not_last_admin(users, user)

    email = user.email
    removed = GrantRepository(db).delete_all_for_user(user_id)
    db.delete(user)
    db.commit()

    logger.info("User deleted", extra={"user_id": user_id, "grants_removed": removed})
    audit_service.log(
        db,
        user_id=actor_id,
        action="USER_DELETED",
        category=ActivityCategory.USER,
        target_id=user_id,
        description=f"User {email} deleted",
        metadata={"grants_removed": removed},
    )
