"""Create, trash, restore and permanently delete documents.

Trash and permanent delete act on a document's whole closure (itself plus
every descendant, trashed or not). Restore walks the closure too but stops
at children that are already active: such a child was restored on its own
and its subtree is left exactly as it is.

Nothing here commits; DocumentService owns the transaction.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models import Document
from ..models.document import new_document_id, utcnow
from ..repositories.document_repository import DocumentRepository
from ..schemas.document import DocumentCreate
from .hierarchy import descendants_of
from .sibling_ranks import SiblingRankManager

logger = logging.getLogger(__name__)


class CascadeService:
    """Lifecycle operations that keep sibling ranks dense."""

    def __init__(self, db: Session, repo: Optional[DocumentRepository] = None):
        self.db = db
        self.repo = repo or DocumentRepository(db)
        self.ranks = SiblingRankManager(db, self.repo)

    def closure(self, doc_id: str) -> List[str]:
        """*doc_id* followed by its descendants in a stable order."""
        return [doc_id] + sorted(descendants_of(self.repo, doc_id))

    def create(self, data: DocumentCreate) -> Document:
        """Insert a new document at the top of its sibling list."""
        self.ranks.shift_insert(data.parent_id, 0)

        now = utcnow()
        doc = Document(
            id=new_document_id(),
            title=data.title,
            content=data.content,
            parent_id=data.parent_id,
            emoji=data.emoji,
            sort_order=0,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        self.repo.add(doc)

        logger.info("Created document", extra={"doc_id": doc.id, "parent_id": doc.parent_id})
        return doc

    def trash(self, doc_id: str) -> Tuple[Document, List[str]]:
        """Soft-delete a document and its entire subtree. Idempotent."""
        doc = self.repo.get_by_id(doc_id)
        was_active = not doc.is_trashed
        parent_id, old_rank = doc.parent_id, doc.sort_order

        ids = self.closure(doc_id)
        now = utcnow()
        self.repo.set_deleted_at(ids, now, now)

        if was_active:
            self.ranks.shift_remove(parent_id, old_rank)

        logger.info(
            "Trashed document",
            extra={"doc_id": doc_id, "affected": len(ids), "was_active": was_active},
        )
        return doc, ids

    def restore(self, doc_id: str) -> Tuple[Document, List[str]]:
        """Un-trash a document and every trashed descendant reachable through trashed nodes.

        Each restored node is put back at its old rank, clamped to the current
        length of its sibling list. Parents are placed before their children
        and siblings in old-rank order, so a subtree restored as a whole keeps
        its internal order.
        """
        doc = self.repo.get_by_id(doc_id)
        if not doc.is_trashed:
            return doc, [doc_id]

        if doc.parent_id is not None:
            parent = self.repo.get_by_id_optional(doc.parent_id)
            if parent is None or parent.is_trashed:
                logger.warning(
                    "Restoring document under a missing or trashed parent",
                    extra={"doc_id": doc_id, "parent_id": doc.parent_id},
                )

        now = utcnow()
        restored: List[str] = []
        for node in self._trashed_walk(doc):
            self._place(node)
            node.deleted_at = None
            node.updated_at = now
            self.db.flush()
            restored.append(node.id)

        logger.info("Restored document", extra={"doc_id": doc_id, "affected": len(restored)})
        return doc, restored

    def permanent_delete(self, doc_id: str) -> List[str]:
        """Remove a document and its entire subtree from the store."""
        doc = self.repo.get_by_id(doc_id)
        was_active = not doc.is_trashed
        parent_id, old_rank = doc.parent_id, doc.sort_order

        ids = self.closure(doc_id)
        self.repo.delete_many(ids)

        if was_active:
            self.ranks.shift_remove(parent_id, old_rank)

        logger.info(
            "Permanently deleted document",
            extra={"doc_id": doc_id, "affected": len(ids), "was_active": was_active},
        )
        return ids

    def _trashed_walk(self, root: Document) -> List[Document]:
        """Breadth-first list of *root* and the trashed nodes below it.

        An active child is a stop node: neither it nor anything beneath it
        is included.
        """
        order: List[Document] = [root]
        visited = {root.id}
        frontier = [root.id]

        while frontier:
            adjacency = self.repo.get_child_ids(frontier)
            child_ids = [c for p in frontier for c in adjacency.get(p, ()) if c not in visited]
            children = self.repo.get_many(child_ids)

            next_frontier = []
            for parent_id in frontier:
                kids = [
                    children[c] for c in adjacency.get(parent_id, ())
                    if c in children and c not in visited
                ]
                kids = [k for k in kids if k.is_trashed]
                kids.sort(key=lambda k: (k.sort_order, k.id))
                for kid in kids:
                    visited.add(kid.id)
                    order.append(kid)
                    next_frontier.append(kid.id)
            frontier = next_frontier

        return order

    def _place(self, node: Document) -> None:
        """Open a slot for *node* at min(old rank, active sibling count)."""
        count = self.ranks.active_count(node.parent_id, exclude_id=node.id)
        rank = min(max(node.sort_order, 0), count)
        self.ranks.shift_insert(node.parent_id, rank)
        node.sort_order = rank
