"""Custom exception hierarchy for notetree."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Document errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"

    # Tree errors
    SELF_REFERENCE = "SELF_REFERENCE"
    DESCENDANT_CYCLE = "DESCENDANT_CYCLE"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"


class NoteTreeException(Exception):
    """
    Base exception for all notetree errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DocumentNotFoundError(NoteTreeException):
    """Document not found in database."""

    def __init__(self, doc_id: str, field: Optional[str] = None):
        details: Dict[str, Any] = {"doc_id": doc_id}
        if field:
            details["field"] = field
        super().__init__(
            f"Document not found: {doc_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details=details
        )


class SelfReferenceError(NoteTreeException):
    """A document cannot become its own parent."""

    def __init__(self, doc_id: str):
        super().__init__(
            f"Cannot move document into itself: {doc_id}",
            ErrorCode.SELF_REFERENCE,
            status_code=400,
            details={"doc_id": doc_id}
        )


class DescendantCycleError(NoteTreeException):
    """Moving this document under the target would create a cycle."""

    def __init__(self, doc_id: str, target_parent_id: str):
        super().__init__(
            f"Cannot move document {doc_id} into its own descendant {target_parent_id}",
            ErrorCode.DESCENDANT_CYCLE,
            status_code=400,
            details={"doc_id": doc_id, "target_parent_id": target_parent_id}
        )


class DatabaseError(NoteTreeException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
