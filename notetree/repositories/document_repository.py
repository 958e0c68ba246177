"""Document repository: the record store under the document tree.

Point lookups, inserts, bulk column updates and deletes, and the ordered
(parent, rank) scan. Nothing here knows about ranks being dense or the tree
being acyclic; those rules live in the services that call it.

Unlike most soft-delete repositories, lookups here include trashed rows:
trash, restore and permanent delete all need to see them.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Query

from ..exceptions import DocumentNotFoundError
from ..models import Document
from .base import BaseRepository

# Bound for IN (...) lists; stays well under SQLite's host parameter limit.
ID_CHUNK_SIZE = 500


def _chunks(ids: List[str], size: int = ID_CHUNK_SIZE) -> Iterable[List[str]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class DocumentRepository(BaseRepository[Document]):
    """Repository for document rows, trashed or not."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    @staticmethod
    def _parent_filter(parent_id: Optional[str]):
        """``parent_id = :p`` that also matches root level (NULL)."""
        if parent_id is None:
            return Document.parent_id.is_(None)
        return Document.parent_id == parent_id

    # -- point operations ---------------------------------------------------

    def add(self, document: Document) -> Document:
        self.db.add(document)
        self.db.flush()
        return document

    def exists(self, doc_id: str) -> bool:
        return self.db.query(Document.id).filter(Document.id == doc_id).first() is not None

    def get_many(self, doc_ids: Iterable[str]) -> Dict[str, Document]:
        """Load several rows at once, keyed by id. Missing ids are skipped."""
        ids = list(doc_ids)
        found: Dict[str, Document] = {}
        for chunk in _chunks(ids):
            for doc in self.db.query(Document).filter(Document.id.in_(chunk)).all():
                found[doc.id] = doc
        return found

    # -- sibling lists ------------------------------------------------------

    def active_siblings(self, parent_id: Optional[str]) -> Query:
        """Query over the active children of *parent_id* (the rank-managed set)."""
        return self.db.query(Document).filter(
            self._parent_filter(parent_id),
            Document.deleted_at.is_(None),
        )

    def count_active_children(self, parent_id: Optional[str], exclude_id: Optional[str] = None) -> int:
        query = self.active_siblings(parent_id)
        if exclude_id is not None:
            query = query.filter(Document.id != exclude_id)
        return query.count()

    def get_children(self, parent_id: Optional[str], include_trashed: bool = False) -> List[Document]:
        """Children of one parent in display order."""
        query = self.db.query(Document).filter(self._parent_filter(parent_id))
        if not include_trashed:
            query = query.filter(Document.deleted_at.is_(None))
        return query.order_by(Document.sort_order.asc(), Document.updated_at.desc()).all()

    def get_child_ids(self, parent_ids: Iterable[str]) -> Dict[str, List[str]]:
        """Adjacency slice ``parent_id -> [child ids]`` for the given parents.

        Trashed children are included; structural descent ignores deleted_at.
        """
        ids = list(parent_ids)
        adjacency: Dict[str, List[str]] = {}
        for chunk in _chunks(ids):
            rows = (
                self.db.query(Document.id, Document.parent_id)
                .filter(Document.parent_id.in_(chunk))
                .all()
            )
            for child_id, parent_id in rows:
                adjacency.setdefault(parent_id, []).append(child_id)
        return adjacency

    # -- bulk updates -------------------------------------------------------

    def set_deleted_at(self, doc_ids: Iterable[str], deleted_at: Optional[datetime], updated_at: datetime) -> int:
        """Set (or clear, with None) deleted_at on every listed row and stamp updated_at."""
        ids = list(doc_ids)
        count = 0
        for chunk in _chunks(ids):
            count += (
                self.db.query(Document)
                .filter(Document.id.in_(chunk))
                .update(
                    {Document.deleted_at: deleted_at, Document.updated_at: updated_at},
                    synchronize_session="fetch",
                )
            )
        return count

    def delete_many(self, doc_ids: Iterable[str]) -> int:
        """Hard delete every listed row."""
        ids = list(doc_ids)
        count = 0
        for chunk in _chunks(ids):
            count += (
                self.db.query(Document)
                .filter(Document.id.in_(chunk))
                .delete(synchronize_session="fetch")
            )
        return count

    # -- listing ------------------------------------------------------------

    def get_all(self, skip: int = 0, limit: int = 50, include_trashed: bool = False) -> List[Document]:
        """Documents ordered by rank, most recently updated first within a rank."""
        query = self.db.query(Document)
        if not include_trashed:
            query = query.filter(Document.deleted_at.is_(None))
        return (
            query.order_by(Document.sort_order.asc(), Document.updated_at.desc(), Document.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_deleted(self, skip: int = 0, limit: int = 200) -> List[Document]:
        """Get trashed documents, ordered by deletion time descending."""
        return (
            self.db.query(Document)
            .filter(Document.deleted_at.isnot(None))
            .order_by(Document.deleted_at.desc(), Document.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )
