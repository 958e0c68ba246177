"""Base repository with shared get-by-ID patterns.

Subclasses specify model_class, id_column, and not_found_error. Lookups by
primary key see every row, trashed ones included; filtering on deleted_at is
left to the callers that need it.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session

from ..database import Base
from ..exceptions import NoteTreeException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Document)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[NoteTreeException]

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        return self.db.query(self.model_class).filter(col == entity_id).first()
