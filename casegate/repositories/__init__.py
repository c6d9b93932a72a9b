"""Data access repositories."""

from .base import BaseRepository
from .user_repository import UserRepository
from .grant_repository import GrantRepository
from .resource_repository import JurisdictionRepository, PersonRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "GrantRepository",
    "JurisdictionRepository",
    "PersonRepository",
]
