"""Shared test fixtures for the notetree test suite.

Every test gets its own in-memory SQLite database (one shared connection via
StaticPool), so tests are fully isolated and need no external services.
"""

import os

# Point the app's default engine at memory and keep logs readable before any
# notetree imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_FORMAT"] = "text"

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from notetree.database import get_db, init_db, make_engine, make_session_factory
from notetree.main import app
from notetree.models import Document
from notetree.schemas.document import DocumentCreate
from notetree.services import DocumentService


@pytest.fixture()
def engine():
    eng = make_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    """Per-test database session."""
    session = make_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture()
def service(db) -> DocumentService:
    return DocumentService(db)


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_document(title: str = "Test Document", **overrides) -> dict:
    """Factory for document creation payloads."""
    payload = {"title": title, "content": "{\"root\": {}}"}
    payload.update(overrides)
    return payload


def create(service: DocumentService, title: str = "", parent_id: Optional[str] = None) -> Document:
    return service.create(DocumentCreate(title=title, parent_id=parent_id))


def make_tree(service: DocumentService, layout: Dict[str, Optional[str]]) -> Dict[str, Document]:
    """Create documents from ``{title: parent_title}`` in insertion order.

    Each new document lands at rank 0, so later siblings sort first.
    """
    docs: Dict[str, Document] = {}
    for title, parent in layout.items():
        parent_id = docs[parent].id if parent is not None else None
        docs[title] = create(service, title, parent_id)
    return docs


def make_chain(service: DocumentService, depth: int) -> List[Document]:
    """A single path root -> ... of *depth* documents."""
    chain: List[Document] = []
    parent_id = None
    for i in range(depth):
        doc = create(service, f"level-{i}", parent_id)
        chain.append(doc)
        parent_id = doc.id
    return chain


def make_full_tree(service: DocumentService, fanout: int, levels: int) -> List[Document]:
    """A complete tree; returns every node, root first."""
    root = create(service, "root")
    nodes = [root]
    frontier = [root]
    for level in range(1, levels):
        next_frontier = []
        for parent in frontier:
            for i in range(fanout):
                child = create(service, f"n{level}-{i}", parent.id)
                nodes.append(child)
                next_frontier.append(child)
        frontier = next_frontier
    return nodes


def active_orders(db, parent_id: Optional[str]) -> List[int]:
    """Sorted ranks of the active children of *parent_id*."""
    db.expire_all()
    query = db.query(Document.sort_order).filter(Document.deleted_at.is_(None))
    if parent_id is None:
        query = query.filter(Document.parent_id.is_(None))
    else:
        query = query.filter(Document.parent_id == parent_id)
    return sorted(row[0] for row in query.all())


def active_titles(db, parent_id: Optional[str]) -> List[str]:
    """Titles of the active children of *parent_id* in rank order."""
    db.expire_all()
    query = db.query(Document).filter(Document.deleted_at.is_(None))
    if parent_id is None:
        query = query.filter(Document.parent_id.is_(None))
    else:
        query = query.filter(Document.parent_id == parent_id)
    return [d.title for d in query.order_by(Document.sort_order.asc()).all()]


def assert_dense(db) -> None:
    """Every parent's active children carry ranks 0..k-1."""
    db.expire_all()
    parents = {row[0] for row in db.query(Document.parent_id).all()}
    for parent_id in parents:
        orders = active_orders(db, parent_id)
        assert orders == list(range(len(orders))), f"ranks under {parent_id!r}: {orders}"


def insert_raw(db, doc_id: str, parent_id: Optional[str] = None, sort_order: int = 0,
               deleted: bool = False, title: str = "") -> Document:
    """Write a row directly, bypassing every rank rule."""
    now = datetime.now(timezone.utc)
    doc = Document(
        id=doc_id,
        title=title or doc_id,
        content="",
        parent_id=parent_id,
        sort_order=sort_order,
        created_at=now,
        updated_at=now,
        deleted_at=now if deleted else None,
    )
    db.add(doc)
    db.commit()
    return doc


PAST = datetime(2020, 1, 1, tzinfo=timezone.utc)


def backdate(db, doc: Document) -> None:
    """Set updated_at far in the past so a later bump is observable."""
    doc.updated_at = PAST
    db.commit()
