"""Base repository with shared get-by-ID patterns.

Subclasses set ``model_class`` and ``resource_type``; the base provides
``get_by_id`` (raises NotFoundError) and ``get_by_id_optional``.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session, Query

from ..database import Base
from ..exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:   The SQLAlchemy model (e.g., User)
        id_column:     Name of the primary-key column (default "id")
        resource_type: Name used in NotFoundError messages
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    resource_type: str = "resource"

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def get_by_id(self, entity_id: int) -> ModelT:
        """Get entity by primary key. Raises NotFoundError if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise NotFoundError(self.resource_type, entity_id)
        return entity

    def get_by_id_optional(self, entity_id: int) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        return self._base_query().filter(col == entity_id).first()
