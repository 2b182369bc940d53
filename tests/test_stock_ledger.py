"""Registre de stock : ajustements conditionnels, plancher et tentatives bornées."""

import time

import pytest
from sqlalchemy.exc import OperationalError

from app.core.context import CurrentIdentity, RequestContext
from app.core.database import SessionLocal
from app.core.exceptions import (
    ConcurrentModification,
    FloorViolation,
    ItemNotFound,
    OperationCancelled,
    PersistenceTimeout,
)
from app.models.item import StockMovementType
from app.repositories.item_repo import ItemRepository
from app.services.stock_ledger import StockLedger


def _snapshot(item_id):
    with SessionLocal() as session:
        return ItemRepository(session).get_stock_snapshot(item_id)


def _movement_count(item_id):
    with SessionLocal() as session:
        return ItemRepository(session).get_movements(item_id)[1]


class TestAdjust:
    def test_decrement_within_floor(self, db, make_item):
        item = make_item(quantity=50)

        updated = StockLedger(db).adjust(item.id, -20, floor=0)

        assert updated.quantity == 30
        assert updated.version == 2
        assert updated.in_stock is True

    def test_decrement_to_floor(self, db, make_item):
        item = make_item(quantity=3)

        updated = StockLedger(db).adjust(item.id, -3, floor=0)

        assert updated.quantity == 0
        assert updated.in_stock is False

    def test_increment_without_floor(self, db, make_item):
        item = make_item(quantity=0)

        updated = StockLedger(db).adjust(item.id, 10)

        assert updated.quantity == 10
        assert updated.in_stock is True

    def test_each_success_bumps_version_once(self, db, make_item):
        item = make_item(quantity=10)
        ledger = StockLedger(db)

        for _ in range(3):
            ledger.adjust(item.id, -1, floor=0)

        assert _snapshot(item.id).version == 4

    def test_floor_violation_writes_nothing(self, db, make_item):
        item = make_item(quantity=5)

        with pytest.raises(FloorViolation) as exc_info:
            StockLedger(db).adjust(item.id, -6, floor=0)

        assert exc_info.value.available == 5
        assert exc_info.value.delta == -6
        snapshot = _snapshot(item.id)
        assert snapshot.quantity == 5
        assert snapshot.version == 1
        assert _movement_count(item.id) == 0

    def test_custom_floor(self, db, make_item):
        item = make_item(quantity=10)

        with pytest.raises(FloorViolation):
            StockLedger(db).adjust(item.id, -8, floor=3)

        assert StockLedger(db).adjust(item.id, -7, floor=3).quantity == 3

    def test_returns_values_of_its_own_write(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        real_get = ItemRepository.get_item_by_id
        state = {"interleaved": False}

        def later_writer_first(repo, item_id):
            if repo.db is db and not state["interleaved"]:
                state["interleaved"] = True
                # Un autre écrivain valide entre notre commit et notre relecture
                with SessionLocal() as other:
                    StockLedger(other).adjust(item_id, 5)
            return real_get(repo, item_id)

        monkeypatch.setattr(ItemRepository, "get_item_by_id", later_writer_first)

        updated = StockLedger(db).adjust(item.id, -3, floor=0)

        assert updated.quantity == 7
        assert updated.version == 2
        assert _snapshot(item.id).quantity == 12

    def test_unknown_item(self, db):
        with pytest.raises(ItemNotFound):
            StockLedger(db).adjust(999, -1, floor=0)


class TestMovements:
    def test_success_records_movement(self, db, make_item):
        item = make_item(quantity=8)
        context = RequestContext(identity=CurrentIdentity(id=42, email="a@example.com", role="admin"))

        StockLedger(db).adjust(item.id, 4, context=context, movement_type=StockMovementType.RESTOCK)

        movements, total = ItemRepository(db).get_movements(item.id)
        assert total == 1
        movement = movements[0]
        assert movement.movement_type == "restock"
        assert movement.quantity == 4
        assert movement.quantity_before == 8
        assert movement.quantity_after == 12
        assert movement.version_after == 2
        assert movement.actor_id == 42
        assert movement.is_inbound is True

    def test_movement_type_follows_delta_sign(self, db, make_item):
        item = make_item(quantity=8)
        ledger = StockLedger(db)

        ledger.adjust(item.id, -2, floor=0)
        ledger.adjust(item.id, 5)

        movements, _ = ItemRepository(db).get_movements(item.id)
        assert [m.movement_type for m in movements] == ["restock", "purchase"]


class TestRetries:
    def test_retries_after_concurrent_write(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        real_cas = ItemRepository.compare_and_set_quantity
        state = {"interleaved": False, "calls": 0}

        def interleaved(repo, item_id, expected_version, new_quantity):
            if repo.db is db:
                state["calls"] += 1
            if not state["interleaved"]:
                state["interleaved"] = True
                # Un autre écrivain valide entre notre lecture et notre écriture
                with SessionLocal() as other:
                    StockLedger(other).adjust(item_id, 5)
            return real_cas(repo, item_id, expected_version, new_quantity)

        monkeypatch.setattr(ItemRepository, "compare_and_set_quantity", interleaved)

        updated = StockLedger(db, backoff_seconds=0).adjust(item.id, -3, floor=0)

        assert state["calls"] == 2
        assert updated.quantity == 12
        assert updated.version == 3
        assert _movement_count(item.id) == 2

    def test_exhausted_attempts(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        monkeypatch.setattr(
            ItemRepository, "compare_and_set_quantity", lambda *args, **kwargs: False
        )

        with pytest.raises(ConcurrentModification) as exc_info:
            StockLedger(db, max_attempts=3, backoff_seconds=0).adjust(item.id, -1, floor=0)

        assert exc_info.value.attempts == 3
        assert exc_info.value.kind == "transient"
        monkeypatch.undo()
        assert _snapshot(item.id).quantity == 10
        assert _movement_count(item.id) == 0

    def test_no_backoff_after_last_attempt(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        waits = []
        monkeypatch.setattr(
            ItemRepository, "compare_and_set_quantity", lambda *args, **kwargs: False
        )
        monkeypatch.setattr(StockLedger, "_backoff", lambda ledger, context: waits.append(context))

        with pytest.raises(ConcurrentModification):
            StockLedger(db, max_attempts=3).adjust(item.id, -1, floor=0)

        assert len(waits) == 2

    def test_single_attempt(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        monkeypatch.setattr(
            ItemRepository, "compare_and_set_quantity", lambda *args, **kwargs: False
        )

        with pytest.raises(ConcurrentModification) as exc_info:
            StockLedger(db, max_attempts=1).adjust(item.id, -1, floor=0)

        assert exc_info.value.attempts == 1

    @pytest.mark.parametrize("max_attempts", [0, -1])
    def test_attempts_must_be_positive(self, db, max_attempts):
        with pytest.raises(ValueError):
            StockLedger(db, max_attempts=max_attempts)

    def test_persistence_error_is_transient(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)

        def locked(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(ItemRepository, "get_stock_snapshot", locked)

        with pytest.raises(PersistenceTimeout):
            StockLedger(db).adjust(item.id, -1, floor=0)


class TestContext:
    def test_cancelled_before_attempt(self, db, make_item):
        item = make_item(quantity=10)
        context = RequestContext()
        context.cancel()

        with pytest.raises(OperationCancelled):
            StockLedger(db).adjust(item.id, -1, floor=0, context=context)

        assert _snapshot(item.id).quantity == 10

    def test_cancelled_before_commit(self, db, make_item, monkeypatch):
        item = make_item(quantity=10)
        context = RequestContext()
        real_cas = ItemRepository.compare_and_set_quantity

        def cancel_after_write(repo, *args, **kwargs):
            applied = real_cas(repo, *args, **kwargs)
            context.cancel()
            return applied

        monkeypatch.setattr(ItemRepository, "compare_and_set_quantity", cancel_after_write)

        with pytest.raises(OperationCancelled):
            StockLedger(db).adjust(item.id, -1, floor=0, context=context)

        snapshot = _snapshot(item.id)
        assert snapshot.quantity == 10
        assert snapshot.version == 1
        assert _movement_count(item.id) == 0

    def test_deadline_exceeded(self, db, make_item):
        item = make_item(quantity=10)
        context = RequestContext(deadline=time.monotonic() - 1)

        with pytest.raises(PersistenceTimeout):
            StockLedger(db).adjust(item.id, -1, floor=0, context=context)

        assert _snapshot(item.id).quantity == 10

    def test_remaining_without_deadline(self):
        assert RequestContext().remaining() is None
        assert RequestContext.with_timeout(5).remaining() > 0
