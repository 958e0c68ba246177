"""Randomised operation sequences that must keep the tree acyclic with dense ranks."""

import random

import pytest

from notetree.exceptions import DescendantCycleError, SelfReferenceError
from notetree.models import Document
from notetree.schemas.document import DocumentUpdate
from tests.conftest import assert_dense, create


def _all_docs(db):
    db.expire_all()
    return db.query(Document).order_by(Document.id).all()


def assert_acyclic(db) -> None:
    """Following parent_id upward from any document ends at the root or a dangling id."""
    parents = {doc.id: doc.parent_id for doc in _all_docs(db)}
    for start in parents:
        seen = {start}
        current = parents[start]
        while current is not None and current in parents:
            assert current not in seen, f"cycle through {start!r}"
            seen.add(current)
            current = parents[current]


class _Driver:
    """Applies one randomly chosen operation per step."""

    def __init__(self, service, db, rng: random.Random):
        self.service = service
        self.db = db
        self.rng = rng
        self.counter = 0

    def _pick(self, docs, allow_root: bool = False):
        choices = [d.id for d in docs]
        if allow_root:
            choices.append(None)
        return self.rng.choice(choices) if choices else None

    def step(self) -> str:
        docs = _all_docs(self.db)
        if len(docs) < 3:
            return self.create(docs)

        op = self.rng.choice(["create", "move", "move", "trash", "restore", "delete", "reparent"])
        return getattr(self, op)(docs)

    def create(self, docs) -> str:
        self.counter += 1
        create(self.service, f"doc-{self.counter}", self._pick(docs, allow_root=True))
        return "create"

    def move(self, docs) -> str:
        doc_id = self._pick(docs)
        target = self._pick(docs, allow_root=True)
        index = self.rng.uniform(-2.0, len(docs) + 2.0)
        try:
            self.service.move(doc_id, target, index)
        except (SelfReferenceError, DescendantCycleError):
            return "move rejected"
        return "move"

    def reparent(self, docs) -> str:
        doc_id = self._pick(docs)
        patch = DocumentUpdate(parent_id=self._pick(docs, allow_root=True), title=f"renamed-{doc_id[:6]}")
        try:
            self.service.update(doc_id, patch)
        except (SelfReferenceError, DescendantCycleError):
            return "reparent rejected"
        return "reparent"

    def trash(self, docs) -> str:
        self.service.trash(self._pick(docs))
        return "trash"

    def restore(self, docs) -> str:
        trashed = [d for d in docs if d.is_trashed]
        if not trashed:
            return self.create(docs)
        self.service.restore(self._pick(trashed))
        return "restore"

    def delete(self, docs) -> str:
        # Deleting is rarer than the other operations so the tree keeps growing.
        if self.rng.random() < 0.5:
            return self.create(docs)
        self.service.permanent_delete(self._pick(docs))
        return "delete"


class TestRandomSequences:

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234, 2024])
    def test_invariants_hold_after_every_step(self, db, service, seed):
        driver = _Driver(service, db, random.Random(seed))
        history = []

        for _ in range(120):
            history.append(driver.step())
            try:
                assert_dense(db)
                assert_acyclic(db)
            except AssertionError as e:
                raise AssertionError(f"seed {seed} after {history}: {e}") from e

    def test_sequences_exercise_every_operation(self, db, service):
        driver = _Driver(service, db, random.Random(99))
        ops = {driver.step() for _ in range(200)}
        assert {"create", "move", "trash", "restore", "delete", "reparent"} <= ops
