"""Bootstrap administrator on startup.

When ``ADMIN_EMAIL`` and ``ADMIN_PASSWORD`` are set and no user with that
email exists, an active ADMIN is created with the given password. The seeded
account skips the first-login flow since the operator chose its password.
Idempotent: an existing account is left untouched.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .config import settings

logger = logging.getLogger(__name__)


def seed_admin_user(
    db: Session,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> bool:
    """Create the bootstrap administrator if it is missing.

    Args:
        db: An open SQLAlchemy session.
        email: Overrides ``settings.admin_email``.
        password: Overrides ``settings.admin_password``.

    Returns:
        True if an account was created.
    """
    from ..models.user import ActivityCategory, User, UserRole
    from ..repositories.user_repository import UserRepository
    from ..services import audit_service
    from ..services.auth_service import hash_password, normalize_email

    email = email if email is not None else settings.admin_email
    password = password if password is not None else settings.admin_password

    if not email or not password:
        logger.debug("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin seed")
        return False

    normalized = normalize_email(email)
    if UserRepository(db).find_by_email(normalized) is not None:
        logger.debug("Bootstrap admin %s already exists", normalized)
        return False

    admin = User(
        email=normalized,
        display_name="Administrator",
        password_hash=hash_password(password),
        role=UserRole.ADMIN.value,
        is_active=True,
        is_first_login=False,
        is_profile_completed=True,
        token_version=0,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)

    logger.info("Seeded bootstrap administrator", extra={"user_id": admin.id})
    audit_service.log(
        db,
        user_id=None,
        action="USER_CREATED",
        category=ActivityCategory.SYSTEM,
        target_id=admin.id,
        description="Bootstrap administrator created",
    )
    return True
