"""Document schemas."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional, List

# Titles matching this (after strip, case-insensitive) are stored as empty:
# the UI renders its own placeholder for untitled notes.
PLACEHOLDER_TITLE = "untitled"


def normalize_title(value: Optional[str]) -> str:
    """Strip whitespace and collapse the "Untitled" placeholder to ""."""
    if value is None:
        return ""
    value = value.strip()
    if value.lower() == PLACEHOLDER_TITLE:
        return ""
    return value


class DocumentCreate(BaseModel):
    """Schema for creating a document."""
    title: Optional[str] = ""
    content: Optional[str] = ""
    parent_id: Optional[str] = None
    emoji: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        return normalize_title(v)

    @field_validator('content')
    @classmethod
    def default_content(cls, v: Optional[str]) -> str:
        return v if v is not None else ""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Meeting notes",
                    "content": "{\"root\": {\"children\": []}}",
                    "parent_id": None,
                    "emoji": "📝",
                }
            ]
        }
    }


class DocumentUpdate(BaseModel):
    """Attribute patch. Only fields present in the request are applied.

    ``parent_id`` is accepted for compatibility with older clients but is
    never written as a column: a change of parent is routed through the
    move operation.
    """
    title: Optional[str] = None
    content: Optional[str] = None
    emoji: Optional[str] = None
    parent_id: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        # An explicit null title is treated like an empty one.
        return normalize_title(v)

    def provided(self) -> set[str]:
        """Names of the fields the caller actually sent."""
        return set(self.model_fields_set)


class DocumentMoveRequest(BaseModel):
    """Schema for moving a document to a parent and position.

    ``index`` may be fractional or out of range; the service floors and
    clamps it instead of rejecting it.
    """
    parent_id: Optional[str] = None
    index: float = Field(0, allow_inf_nan=False)


class DocumentResponse(BaseModel):
    """Full document in API responses."""
    id: str
    title: str
    content: str
    parent_id: Optional[str] = None
    emoji: Optional[str] = None
    sort_order: int
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TrashResult(BaseModel):
    """Outcome of trashing a document and its subtree."""
    document: DocumentResponse
    trashed_ids: List[str]


class RestoreResult(BaseModel):
    """Outcome of restoring a document and its trashed subtree."""
    document: DocumentResponse
    restored_ids: List[str]


class PermanentDeleteResult(BaseModel):
    """Ids of every row removed by a permanent delete."""
    deleted_ids: List[str]


class DescendantsResponse(BaseModel):
    id: str
    descendant_ids: List[str]
