"""Reorder and reparent documents.

A move never touches the moved document's descendants: their parent_id
still points at it, so the whole subtree travels along.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import DocumentNotFoundError
from ..models import Document
from ..models.document import utcnow
from ..repositories.document_repository import DocumentRepository
from .hierarchy import assert_no_cycle
from .sibling_ranks import ClampMode, SiblingRankManager, clamp

logger = logging.getLogger(__name__)


class MoveService:
    """Same-parent reorders and cross-parent moves.

    Writes into the caller's transaction; committing or rolling back is the
    caller's job.
    """

    def __init__(self, db: Session, repo: Optional[DocumentRepository] = None):
        self.db = db
        self.repo = repo or DocumentRepository(db)
        self.ranks = SiblingRankManager(db, self.repo)

    def move(self, doc_id: str, new_parent_id: Optional[str], target_index: float) -> Document:
        """Place *doc_id* under *new_parent_id* at *target_index*.

        Raises DocumentNotFoundError for a missing document or target parent,
        SelfReferenceError / DescendantCycleError for moves that would create
        a cycle.
        """
        doc = self.repo.get_by_id(doc_id)

        if new_parent_id is not None and new_parent_id != doc.parent_id and not self.repo.exists(new_parent_id):
            raise DocumentNotFoundError(new_parent_id, field="parent_id")

        assert_no_cycle(self.repo, doc_id, new_parent_id)

        if doc.is_trashed:
            return self._move_trashed(doc, new_parent_id, target_index)
        if new_parent_id == doc.parent_id:
            return self._reorder(doc, target_index)
        return self._reparent(doc, new_parent_id, target_index)

    def _reorder(self, doc: Document, target_index: float) -> Document:
        current = doc.sort_order
        count = self.ranks.active_count(doc.parent_id)
        idx = clamp(target_index, count, ClampMode.WITHIN)

        if idx == current:
            logger.debug("Move is a no-op", extra={"doc_id": doc.id, "sort_order": current})
            return doc

        if idx < current:
            self.ranks.shift_range(doc.parent_id, idx, current - 1, 1, exclude_id=doc.id)
        else:
            self.ranks.shift_range(doc.parent_id, current + 1, idx, -1, exclude_id=doc.id)

        doc.sort_order = idx
        doc.updated_at = utcnow()
        self.db.flush()

        logger.info(
            "Reordered document",
            extra={"doc_id": doc.id, "from_index": current, "to_index": idx},
        )
        return doc

    def _reparent(self, doc: Document, new_parent_id: Optional[str], target_index: float) -> Document:
        old_parent_id = doc.parent_id
        self.ranks.shift_remove(old_parent_id, doc.sort_order)

        count = self.ranks.active_count(new_parent_id)
        idx = clamp(target_index, count, ClampMode.INSERT)
        self.ranks.shift_insert(new_parent_id, idx)

        doc.parent_id = new_parent_id
        doc.sort_order = idx
        doc.updated_at = utcnow()
        self.db.flush()

        logger.info(
            "Moved document",
            extra={
                "doc_id": doc.id,
                "old_parent_id": old_parent_id,
                "new_parent_id": new_parent_id,
                "to_index": idx,
            },
        )
        return doc

    def _move_trashed(self, doc: Document, new_parent_id: Optional[str], target_index: float) -> Document:
        """Relocate a trashed document without shifting anyone.

        It belongs to no active sibling list, so only its parent and its
        restore hint change.
        """
        count = self.ranks.active_count(new_parent_id, exclude_id=doc.id)
        idx = clamp(target_index, count, ClampMode.INSERT)

        if new_parent_id == doc.parent_id and idx == doc.sort_order:
            return doc

        doc.parent_id = new_parent_id
        doc.sort_order = idx
        doc.updated_at = utcnow()
        self.db.flush()

        logger.info(
            "Moved trashed document",
            extra={"doc_id": doc.id, "new_parent_id": new_parent_id, "to_index": idx},
        )
        return doc
