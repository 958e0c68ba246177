"""Document model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Index, String, Text, Integer, DateTime
from sqlalchemy.types import TypeDecorator
from ..database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite has no timezone support and hands back naive values; this stores
    naive UTC and re-attaches UTC on load so comparisons never mix naive and
    aware datetimes.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Document(Base):
    """A node of the document tree.

    ``parent_id`` is a plain column, not a foreign key: rows may reference a
    parent that no longer exists and readers must tolerate it.
    """

    __tablename__ = "documents"
    __table_args__ = (
        # Ordered range scan over one sibling list.
        Index("ix_documents_parent_sort", "parent_id", "sort_order"),
        Index("ix_documents_updated_at", "updated_at"),
        Index("ix_documents_deleted_at", "deleted_at"),
    )

    # Primary key
    id = Column(String(36), primary_key=True, default=new_document_id)

    # Content (opaque to the store)
    title = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    emoji = Column(String(32), nullable=True)

    # Hierarchical structure
    parent_id = Column(String(36), nullable=True)
    # Rank among active siblings; kept as a restore hint while trashed.
    sort_order = Column(Integer, nullable=False, default=0)

    # Timestamps are set by the services, never by the database: a no-op
    # operation must leave updated_at untouched.
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    # Soft delete (NULL = active, timestamp = trashed)
    deleted_at = Column(UTCDateTime(), nullable=True, default=None)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"<Document id={self.id!r} parent_id={self.parent_id!r} "
            f"sort_order={self.sort_order} trashed={self.is_trashed}>"
        )
