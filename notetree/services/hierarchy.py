"""Structural queries over the parent/child graph.

descendants_of -- transitive closure below a node, trashed nodes included
assert_no_cycle -- reject a reparent that would make a node its own ancestor

Both read the current session state, so a check made inside a transaction
sees every earlier write of that transaction.
"""

import logging
from typing import Optional, Set

from ..exceptions import DescendantCycleError, SelfReferenceError
from ..repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)


def descendants_of(repo: DocumentRepository, doc_id: str) -> Set[str]:
    """Every id reachable below *doc_id* by following parent_id downward.

    Breadth-first, one query per level. The visited set makes the walk
    terminate on corrupt data that already contains a cycle; *doc_id* itself
    is never part of the result.
    """
    repo.db.flush()

    visited: Set[str] = {doc_id}
    result: Set[str] = set()
    frontier = [doc_id]

    while frontier:
        adjacency = repo.get_child_ids(frontier)
        next_frontier = []
        for parent in frontier:
            for child in adjacency.get(parent, ()):
                if child in visited:
                    logger.warning(
                        "Cycle in stored tree, skipping revisit",
                        extra={"doc_id": doc_id, "parent_id": parent, "child_id": child},
                    )
                    continue
                visited.add(child)
                result.add(child)
                next_frontier.append(child)
        frontier = next_frontier

    return result


def assert_no_cycle(repo: DocumentRepository, moving_id: str, target_parent_id: Optional[str]) -> None:
    """Raise if placing *moving_id* under *target_parent_id* would break acyclicity."""
    if target_parent_id is None:
        return
    if target_parent_id == moving_id:
        raise SelfReferenceError(moving_id)
    if target_parent_id in descendants_of(repo, moving_id):
        raise DescendantCycleError(moving_id, target_parent_id)
