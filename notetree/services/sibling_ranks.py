"""Sibling rank bookkeeping.

Every active child of a parent carries a rank (sort_order) and the ranks of
one sibling list are always 0..k-1 once an operation completes. All gap
arithmetic goes through this module; callers never compute offsets
themselves.

Trashed documents are invisible here: they keep whatever rank they had as a
restore hint and are never shifted.
"""

import math
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Document
from ..repositories.document_repository import DocumentRepository


class ClampMode(str, Enum):
    """How far past the end of a sibling list an index may point."""
    INSERT = "insert"   # [0, count]: the slot after the last sibling is valid
    WITHIN = "within"   # [0, count - 1]: reordering inside the list


def clamp(index: float, sibling_count: int, mode: ClampMode) -> int:
    """Floor *index* and clamp it into the valid range for *mode*.

    Out-of-range positions are never an error: negative values land on 0,
    overly large ones on the last valid slot.
    """
    upper = sibling_count if mode == ClampMode.INSERT else sibling_count - 1
    upper = max(upper, 0)
    if math.isnan(index):
        return 0
    if math.isinf(index):
        return upper if index > 0 else 0
    return min(max(math.floor(index), 0), upper)


class SiblingRankManager:
    """Rank shifts on the active children of one parent.

    Operates on the caller's session; nothing here commits.
    """

    def __init__(self, db: Session, repo: Optional[DocumentRepository] = None):
        self.db = db
        self.repo = repo or DocumentRepository(db)

    def shift_insert(self, parent_id: Optional[str], at_index: int) -> int:
        """Open a slot at *at_index*: ranks >= at_index move up by one."""
        return self._shift(
            self.repo.active_siblings(parent_id).filter(Document.sort_order >= at_index),
            1,
        )

    def shift_remove(self, parent_id: Optional[str], from_index: int) -> int:
        """Close the slot at *from_index*: ranks > from_index move down by one."""
        return self._shift(
            self.repo.active_siblings(parent_id).filter(Document.sort_order > from_index),
            -1,
        )

    def shift_range(
        self,
        parent_id: Optional[str],
        low: int,
        high: int,
        delta: int,
        exclude_id: Optional[str] = None,
    ) -> int:
        """Shift ranks in the closed interval [low, high] by *delta*."""
        if low > high:
            return 0
        query = self.repo.active_siblings(parent_id).filter(
            Document.sort_order >= low,
            Document.sort_order <= high,
        )
        if exclude_id is not None:
            query = query.filter(Document.id != exclude_id)
        return self._shift(query, delta)

    def active_count(self, parent_id: Optional[str], exclude_id: Optional[str] = None) -> int:
        self.db.flush()
        return self.repo.count_active_children(parent_id, exclude_id=exclude_id)

    def _shift(self, query, delta: int) -> int:
        self.db.flush()
        return query.update(
            {Document.sort_order: Document.sort_order + delta},
            synchronize_session="fetch",
        )
