"""API routes."""

from .auth_routes import router as auth_router
from .permission_routes import router as permissions_router
from .resources import jurisdictions_router, persons_router
from .activity import router as activity_router

__all__ = [
    "auth_router",
    "permissions_router",
    "jurisdictions_router",
    "persons_router",
    "activity_router",
]
