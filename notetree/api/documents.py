"""Document API endpoints.

Endpoints are thin: DocumentService owns every operation, including the
transaction. Errors propagate as NoteTreeException and are rendered by the
exception handler registered in main.
"""

from fastapi import APIRouter, Depends, Query, Body
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..exceptions import DocumentNotFoundError
from ..schemas.document import (
    DescendantsResponse,
    DocumentCreate,
    DocumentMoveRequest,
    DocumentResponse,
    DocumentUpdate,
    PermanentDeleteResult,
    RestoreResult,
    TrashResult,
)
from ..services import DocumentService

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def create_document(
    document: DocumentCreate,
    db: Session = Depends(get_db),
):
    """Create a document at the top of its parent's sibling list."""
    return DocumentService(db).create(document)


@router.get("", response_model=List[DocumentResponse])
def list_documents(
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    include_trashed: bool = False,
    db: Session = Depends(get_db),
):
    """List documents by rank. Out-of-range limit/offset are clamped, not rejected."""
    return DocumentService(db).list(limit=limit, offset=offset, include_trashed=include_trashed)


# --- Fixed-path endpoints (must be before /{doc_id} to avoid route shadowing) ---


@router.get("/trash", response_model=List[DocumentResponse])
def list_trash(
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    db: Session = Depends(get_db),
):
    """List trashed documents, most recently trashed first."""
    return DocumentService(db).list_trashed(limit=limit, offset=offset)


@router.get("/roots", response_model=List[DocumentResponse])
def list_roots(
    include_trashed: bool = False,
    db: Session = Depends(get_db),
):
    """Root-level documents in display order."""
    return DocumentService(db).list_children(None, include_trashed=include_trashed)


# --- Parameterized endpoints (/{doc_id} and /{doc_id}/...) ---


@router.get("/{doc_id}", response_model=DocumentResponse)
def get_document(
    doc_id: str,
    db: Session = Depends(get_db),
):
    """Get a document by ID, trashed or not."""
    doc = DocumentService(db).get_by_id(doc_id)
    if doc is None:
        raise DocumentNotFoundError(doc_id)
    return doc


@router.get("/{doc_id}/children", response_model=List[DocumentResponse])
def list_children(
    doc_id: str,
    include_trashed: bool = False,
    db: Session = Depends(get_db),
):
    """Children of a document in display order. Empty for unknown ids."""
    return DocumentService(db).list_children(doc_id, include_trashed=include_trashed)


@router.get("/{doc_id}/descendants", response_model=DescendantsResponse)
def get_descendants(
    doc_id: str,
    db: Session = Depends(get_db),
):
    """Every id below a document. Used to rule out invalid drop targets."""
    ids = DocumentService(db).descendants(doc_id)
    return DescendantsResponse(id=doc_id, descendant_ids=ids)


@router.patch("/{doc_id}", response_model=DocumentResponse)
def update_document(
    doc_id: str,
    patch: DocumentUpdate = Body(...),
    db: Session = Depends(get_db),
):
    """Patch title, content or emoji. A new parent_id is applied as a move to index 0."""
    return DocumentService(db).update(doc_id, patch)


@router.post("/{doc_id}/move", response_model=DocumentResponse)
def move_document(
    doc_id: str,
    request: DocumentMoveRequest = Body(...),
    db: Session = Depends(get_db),
):
    """Reorder or reparent a document."""
    return DocumentService(db).move(doc_id, request.parent_id, request.index)


@router.post("/{doc_id}/trash", response_model=TrashResult)
def trash_document(
    doc_id: str,
    db: Session = Depends(get_db),
):
    """Move a document and its subtree to the trash. Idempotent."""
    return DocumentService(db).trash(doc_id)


@router.post("/{doc_id}/restore", response_model=RestoreResult)
def restore_document(
    doc_id: str,
    db: Session = Depends(get_db),
):
    """Restore a trashed document and its trashed descendants."""
    return DocumentService(db).restore(doc_id)


@router.delete("/{doc_id}", response_model=PermanentDeleteResult)
def permanent_delete_document(
    doc_id: str,
    db: Session = Depends(get_db),
):
    """Permanently delete a document and its whole subtree."""
    ids = DocumentService(db).permanent_delete(doc_id)
    return PermanentDeleteResult(deleted_ids=ids)
