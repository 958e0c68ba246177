"""Tests for trash, restore and permanent delete cascades."""

import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from notetree.exceptions import DatabaseError, DocumentNotFoundError
from notetree.models import Document
from tests.conftest import (
    PAST,
    active_orders,
    active_titles,
    assert_dense,
    backdate,
    create,
    make_chain,
    make_full_tree,
    make_tree,
)


@pytest.fixture()
def family(service):
    """sibling, parent (with c1, c2, c3), other at root level."""
    return make_tree(service, {
        "other": None,
        "parent": None,
        "c1": "parent",
        "c2": "parent",
        "c3": "parent",
        "sibling": None,
    })


def _doc(db, doc_id) -> Document:
    db.expire_all()
    return db.get(Document, doc_id)


class TestTrash:

    def test_trash_cascades_to_children(self, db, service, family):
        result = service.trash(family["parent"].id)

        assert len(result.trashed_ids) == 4
        assert result.trashed_ids[0] == family["parent"].id
        assert result.document.deleted_at is not None
        for title in ("parent", "c1", "c2", "c3"):
            assert _doc(db, family[title].id).is_trashed

    def test_trash_keeps_parent_links(self, db, service, family):
        service.trash(family["parent"].id)
        assert _doc(db, family["c1"].id).parent_id == family["parent"].id

    def test_trash_closes_gap_among_siblings(self, db, service, family):
        service.trash(family["parent"].id)
        assert active_titles(db, None) == ["sibling", "other"]
        assert active_orders(db, None) == [0, 1]

    def test_trash_is_idempotent(self, db, service, family):
        service.trash(family["parent"].id)
        again = service.trash(family["parent"].id)

        assert len(again.trashed_ids) == 4
        assert active_orders(db, None) == [0, 1]

    def test_trash_includes_already_trashed_descendants(self, service, family):
        service.trash(family["c2"].id)
        result = service.trash(family["parent"].id)
        assert family["c2"].id in result.trashed_ids

    def test_trash_leaf_closes_gap_under_parent(self, db, service, family):
        service.trash(family["c2"].id)
        assert active_titles(db, family["parent"].id) == ["c3", "c1"]
        assert active_orders(db, family["parent"].id) == [0, 1]

    def test_trash_bumps_updated_at(self, db, service, family):
        backdate(db, family["c1"])
        service.trash(family["parent"].id)
        assert _doc(db, family["c1"].id).updated_at > PAST

    def test_trash_missing(self, service):
        with pytest.raises(DocumentNotFoundError):
            service.trash("nope")

    def test_trash_rolls_back_on_failure(self, db, service, family, monkeypatch):
        def boom(*args, **kwargs):
            raise SQLAlchemyError("boom")

        monkeypatch.setattr(service.cascade.ranks, "shift_remove", boom)
        with pytest.raises(DatabaseError):
            service.trash(family["parent"].id)

        for title in ("parent", "c1", "c2", "c3"):
            assert not _doc(db, family[title].id).is_trashed
        assert active_orders(db, None) == [0, 1, 2]


class TestRestore:

    def test_restore_cascades_and_keeps_links(self, db, service, family):
        service.trash(family["parent"].id)
        result = service.restore(family["parent"].id)

        assert len(result.restored_ids) == 4
        assert result.restored_ids[0] == family["parent"].id
        assert result.document.deleted_at is None
        assert active_titles(db, family["parent"].id) == ["c3", "c2", "c1"]
        assert_dense(db)

    def test_restore_returns_to_old_position(self, db, service, family):
        service.trash(family["parent"].id)
        service.restore(family["parent"].id)
        assert active_titles(db, None) == ["sibling", "parent", "other"]

    def test_restore_clamps_stale_rank(self, db, service):
        roots = make_tree(service, {"A": None, "B": None, "C": None, "D": None})
        service.trash(roots["A"].id)  # legacy rank 3
        service.trash(roots["B"].id)
        service.trash(roots["C"].id)

        result = service.restore(roots["A"].id)

        assert result.document.sort_order == 1
        assert active_titles(db, None) == ["D", "A"]
        assert_dense(db)

    def test_restore_active_document_is_noop(self, db, service, family):
        backdate(db, family["parent"])
        result = service.restore(family["parent"].id)

        assert result.restored_ids == [family["parent"].id]
        assert _doc(db, family["parent"].id).updated_at == PAST
        assert active_orders(db, None) == [0, 1, 2]

    def test_restore_bumps_updated_at(self, db, service, family):
        service.trash(family["parent"].id)
        backdate(db, _doc(db, family["c1"].id))
        service.restore(family["parent"].id)
        assert _doc(db, family["c1"].id).updated_at > PAST

    def test_branch_break_stops_descent(self, db, service):
        docs = make_tree(service, {"P": None, "K": "P", "G": "K"})
        service.trash(docs["P"].id)
        service.restore(docs["K"].id)
        service.trash(docs["G"].id)

        result = service.restore(docs["P"].id)

        assert result.restored_ids == [docs["P"].id]
        assert not _doc(db, docs["K"].id).is_trashed
        assert _doc(db, docs["G"].id).is_trashed
        assert_dense(db)

    def test_branch_break_keeps_sibling_ranks_dense(self, db, service):
        docs = make_tree(service, {"P": None, "y": "P", "x": "P"})
        service.trash(docs["P"].id)
        service.restore(docs["y"].id)

        result = service.restore(docs["P"].id)

        assert docs["y"].id not in result.restored_ids
        assert active_titles(db, docs["P"].id) == ["x", "y"]
        assert_dense(db)

    def test_restore_child_of_trashed_parent_warns(self, db, service, caplog):
        docs = make_tree(service, {"P": None, "K": "P"})
        service.trash(docs["P"].id)

        with caplog.at_level(logging.WARNING, logger="notetree.services.cascade_service"):
            service.restore(docs["K"].id)

        assert any("trashed parent" in r.getMessage() for r in caplog.records)
        assert active_orders(db, docs["P"].id) == [0]

    def test_restore_missing(self, service):
        with pytest.raises(DocumentNotFoundError):
            service.restore("nope")

    def test_restore_rolls_back_on_failure(self, db, service, family, monkeypatch):
        service.trash(family["parent"].id)
        roots_before = active_titles(db, None)

        place = service.cascade._place
        placed = []

        def place_then_fail(node):
            placed.append(node.id)
            if len(placed) == 2:
                raise SQLAlchemyError("boom")
            place(node)

        monkeypatch.setattr(service.cascade, "_place", place_then_fail)
        with pytest.raises(DatabaseError):
            service.restore(family["parent"].id)

        assert placed[0] == family["parent"].id
        assert _doc(db, family["parent"].id).is_trashed
        for title in ("c1", "c2", "c3"):
            assert _doc(db, family[title].id).is_trashed
        assert active_titles(db, None) == roots_before
        assert active_orders(db, None) == [0, 1]


class TestCascadeCompleteness:

    @pytest.mark.parametrize("depth", [50, 100])
    def test_chain(self, db, service, depth):
        chain = make_chain(service, depth)

        trashed = service.trash(chain[0].id)
        assert len(trashed.trashed_ids) == depth
        assert service.list(include_trashed=False) == []

        restored = service.restore(chain[0].id)
        assert len(restored.restored_ids) == depth
        assert_dense(db)

    @pytest.mark.parametrize("fanout, levels, size", [(2, 6, 63), (3, 5, 121)])
    def test_wide_tree(self, db, service, fanout, levels, size):
        nodes = make_full_tree(service, fanout, levels)
        assert len(nodes) == size

        trashed = service.trash(nodes[0].id)
        assert sorted(trashed.trashed_ids) == sorted(n.id for n in nodes)

        restored = service.restore(nodes[0].id)
        assert len(restored.restored_ids) == size
        assert_dense(db)

    def test_wide_tree_restore_keeps_order(self, db, service):
        nodes = make_full_tree(service, fanout=3, levels=3)
        root = nodes[0]
        before = {n.id: active_titles(db, n.id) for n in nodes}

        service.trash(root.id)
        service.restore(root.id)

        assert {n.id: active_titles(db, n.id) for n in nodes} == before


class TestPermanentDelete:

    def test_deletes_whole_subtree(self, db, service, family):
        deleted = service.permanent_delete(family["parent"].id)

        assert sorted(deleted) == sorted(family[t].id for t in ("parent", "c1", "c2", "c3"))
        for title in ("parent", "c1", "c2", "c3"):
            assert _doc(db, family[title].id) is None
        assert active_titles(db, None) == ["sibling", "other"]
        assert active_orders(db, None) == [0, 1]

    def test_delete_trashed_does_not_shift(self, db, service, family):
        service.trash(family["c2"].id)
        before = active_orders(db, family["parent"].id)

        deleted = service.permanent_delete(family["c2"].id)

        assert deleted == [family["c2"].id]
        assert active_orders(db, family["parent"].id) == before

    def test_delete_ignores_trashed_state_of_descendants(self, db, service):
        docs = make_tree(service, {"P": None, "K": "P", "G": "K"})
        service.trash(docs["P"].id)
        service.restore(docs["K"].id)

        deleted = service.permanent_delete(docs["P"].id)

        assert len(deleted) == 3
        assert db.query(Document).count() == 0

    def test_delete_missing(self, service):
        with pytest.raises(DocumentNotFoundError):
            service.permanent_delete("nope")

    def test_delete_rolls_back_on_failure(self, db, service, family, monkeypatch):
        def boom(*args, **kwargs):
            raise SQLAlchemyError("boom")

        monkeypatch.setattr(service.cascade.ranks, "shift_remove", boom)
        with pytest.raises(DatabaseError):
            service.permanent_delete(family["parent"].id)

        db.expire_all()
        assert db.query(Document).count() == 6
        assert active_orders(db, None) == [0, 1, 2]

    def test_create_after_delete_keeps_ranks_dense(self, db, service, family):
        service.permanent_delete(family["other"].id)
        create(service, "new")
        assert active_titles(db, None) == ["new", "sibling", "parent"]
        assert_dense(db)
