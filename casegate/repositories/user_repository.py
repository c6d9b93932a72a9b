"""Principal store: user lookups and the token_version counter."""

from typing import Optional

from sqlalchemy import func

from ..models.user import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    model_class = User
    resource_type = "user"

    def find_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup on the normalized email."""
        normalized = email.strip().lower()
        return (
            self.db.query(User)
            .filter(func.lower(User.email) == normalized)
            .first()
        )

    def list_all(self) -> list[User]:
        return self.db.query(User).order_by(User.created_at, User.id).all()

    def count_admins(self, active_only: bool = True) -> int:
        query = self.db.query(User).filter(User.role == "ADMIN")
        if active_only:
            query = query.filter(User.is_active.is_(True))
        return query.count()

    def update(self, user_id: int, **fields) -> User:
        """Apply *fields* to the user and commit. Raises NotFoundError."""
        user = self.get_by_id(user_id)
        for key, value in fields.items():
            if not hasattr(User, key):
                raise AttributeError(f"User has no column {key!r}")
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def increment_token_version(self, user_id: int) -> int:
        """Bump token_version in a single UPDATE and return the new value.

        Concurrent bumps are last-write-wins on the read-back; both callers
        end up with tokens that one of them no longer matches, which forces
        a re-login rather than granting access.
        """
        updated = (
            self.db.query(User)
            .filter(User.id == user_id)
            .update(
                {User.token_version: User.token_version + 1},
                synchronize_session=False,
            )
        )
        if not updated:
            self.db.rollback()
            self.get_by_id(user_id)
        self.db.commit()
        return self.current_token_version(user_id)

    def current_token_version(self, user_id: int) -> int:
        """Read token_version straight from the database, bypassing any
        stale value cached on a loaded User instance."""
        value = (
            self.db.query(User.token_version)
            .filter(User.id == user_id)
            .scalar()
        )
        if value is None:
            self.get_by_id(user_id)
        return int(value or 0)
