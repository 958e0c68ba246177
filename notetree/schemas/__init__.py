"""Pydantic schemas for API validation."""

from .document import (
    DocumentCreate,
    DocumentUpdate,
    DocumentMoveRequest,
    DocumentResponse,
    TrashResult,
    RestoreResult,
    PermanentDeleteResult,
    DescendantsResponse,
    normalize_title,
)

__all__ = [
    "DocumentCreate",
    "DocumentUpdate",
    "DocumentMoveRequest",
    "DocumentResponse",
    "TrashResult",
    "RestoreResult",
    "PermanentDeleteResult",
    "DescendantsResponse",
    "normalize_title",
]
