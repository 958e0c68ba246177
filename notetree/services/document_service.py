"""Document service: the single entry point for document operations.

Every mutating method runs as one unit of work. It takes the process-wide
write lock, does all of its reads and writes in the session's transaction,
and commits once at the end or rolls back everything on failure. Callers
never coordinate MoveService and CascadeService themselves.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import WRITE_TRANSACTION_OPTIONS
from ..exceptions import DatabaseError, NoteTreeException
from ..models import Document
from ..models.document import utcnow
from ..repositories import DocumentRepository
from ..schemas.document import DocumentCreate, DocumentUpdate, RestoreResult, TrashResult, DocumentResponse
from .cascade_service import CascadeService
from .hierarchy import descendants_of
from .move_service import MoveService

logger = logging.getLogger(__name__)

# Serializes rank arithmetic between threads sharing one engine.
_write_lock = threading.RLock()


def _clamp_limit(limit: Optional[int], default: int) -> int:
    if limit is None:
        limit = default
    return min(max(int(limit), 1), settings.list_max_limit)


def _clamp_offset(offset: Optional[int]) -> int:
    return max(int(offset or 0), 0)


class DocumentService:
    """Deep module for the document tree.

    Owns create, update, move, trash, restore and permanent delete, plus the
    read side used by the sidebar and the trash view.
    """

    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.mover = MoveService(db, self.doc_repo)
        self.cascade = CascadeService(db, self.doc_repo)

    def _begin_write(self) -> None:
        """Open a fresh transaction that holds the write lock from its first statement.

        A transaction the caller left open on the session (typically reads) is
        committed first, because its BEGIN mode can no longer be changed.
        """
        if self.db.in_transaction():
            self.db.commit()
        self.db.connection(execution_options=WRITE_TRANSACTION_OPTIONS)

    @contextmanager
    def _unit_of_work(self, operation: str, doc_id: Optional[str] = None) -> Iterator[None]:
        with _write_lock:
            try:
                self._begin_write()
                yield
                self.db.commit()
            except NoteTreeException:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Database error during {operation}",
                    extra={"operation": operation, "doc_id": doc_id},
                    exc_info=True,
                )
                raise DatabaseError(f"Failed to {operation} document", original_error=e) from e
            except Exception:
                self.db.rollback()
                raise

    # -- mutations ----------------------------------------------------------

    def create(self, data: DocumentCreate) -> Document:
        """Create a document at rank 0 under its parent.

        The parent is not required to exist; such a document simply hangs
        off an id nobody owns until it is moved.
        """
        with self._unit_of_work("create"):
            doc = self.cascade.create(data)
        return doc

    def update(self, doc_id: str, patch: DocumentUpdate) -> Document:
        """Apply an attribute patch. Only fields present in *patch* are written.

        A ``parent_id`` different from the current one is handed to move at
        index 0 instead of being written as a column.
        """
        fields = patch.provided()
        with self._unit_of_work("update", doc_id):
            doc = self.doc_repo.get_by_id(doc_id)

            if "parent_id" in fields and patch.parent_id != doc.parent_id:
                logger.info(
                    "Redirecting parent change to move",
                    extra={"doc_id": doc_id, "new_parent_id": patch.parent_id},
                )
                doc = self.mover.move(doc_id, patch.parent_id, 0)

            if "title" in fields:
                doc.title = patch.title
            if "content" in fields:
                doc.content = patch.content if patch.content is not None else ""
            if "emoji" in fields:
                doc.emoji = patch.emoji
            doc.updated_at = utcnow()
            self.db.flush()
        return doc

    def move(self, doc_id: str, new_parent_id: Optional[str], index: float) -> Document:
        """Move *doc_id* to position *index* under *new_parent_id* (None for root)."""
        with self._unit_of_work("move", doc_id):
            doc = self.mover.move(doc_id, new_parent_id, index)
        return doc

    def trash(self, doc_id: str) -> TrashResult:
        """Soft-delete a document with its subtree. Idempotent."""
        with self._unit_of_work("trash", doc_id):
            doc, ids = self.cascade.trash(doc_id)
        return TrashResult(document=DocumentResponse.model_validate(doc), trashed_ids=ids)

    def restore(self, doc_id: str) -> RestoreResult:
        """Restore a trashed document and the trashed part of its subtree."""
        with self._unit_of_work("restore", doc_id):
            doc, ids = self.cascade.restore(doc_id)
        return RestoreResult(document=DocumentResponse.model_validate(doc), restored_ids=ids)

    def permanent_delete(self, doc_id: str) -> List[str]:
        """Delete a document and its subtree for good. Returns the removed ids."""
        with self._unit_of_work("permanently delete", doc_id):
            ids = self.cascade.permanent_delete(doc_id)
        return ids

    # -- reads --------------------------------------------------------------

    def get_by_id(self, doc_id: str) -> Optional[Document]:
        """Get document by ID, trashed or not. Returns None if not found."""
        return self.doc_repo.get_by_id_optional(doc_id)

    def list(self, limit: Optional[int] = None, offset: int = 0, include_trashed: bool = False) -> List[Document]:
        return self.doc_repo.get_all(
            skip=_clamp_offset(offset),
            limit=_clamp_limit(limit, settings.list_default_limit),
            include_trashed=include_trashed,
        )

    def list_trashed(self, limit: Optional[int] = None, offset: int = 0) -> List[Document]:
        """Trashed documents, most recently trashed first."""
        return self.doc_repo.get_deleted(
            skip=_clamp_offset(offset),
            limit=_clamp_limit(limit, settings.trash_default_limit),
        )

    def list_children(self, parent_id: Optional[str], include_trashed: bool = False) -> List[Document]:
        """Children of *parent_id* (None for root level) in display order."""
        return self.doc_repo.get_children(parent_id, include_trashed=include_trashed)

    def descendants(self, doc_id: str) -> List[str]:
        """Sorted ids below *doc_id*, trashed ones included."""
        self.doc_repo.get_by_id(doc_id)
        return sorted(descendants_of(self.doc_repo, doc_id))
