from .cascade_service import CascadeService
from .document_service import DocumentService
from .move_service import MoveService
from .sibling_ranks import ClampMode, SiblingRankManager, clamp

__all__ = [
    "CascadeService",
    "ClampMode",
    "DocumentService",
    "MoveService",
    "SiblingRankManager",
    "clamp",
]
