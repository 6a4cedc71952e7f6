"""
Store failures and numeric overflow: every mutating operation comes back as a
failure result with nothing applied, never as an exception.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_order
from otc_desk.errors import StoreError, ValidationError
from otc_desk.extensions import db
from otc_desk.models import AppSettings, InventoryLedgerEntry, Order
from otc_desk.models.orders import STATUS_NEW
from otc_desk.services import inventory_service, order_service
from otc_desk.services.concurrency import run_operation


@pytest.fixture
def failing_commit(monkeypatch):
    """Make every commit on the current session fail as a locked database would."""
    calls = []

    def commit():
        calls.append(1)
        raise OperationalError("COMMIT", None, Exception("database is locked"))

    monkeypatch.setattr(db.session(), "commit", commit)
    return calls


def test_add_batch_store_failure_applies_nothing(db_session, failing_commit):
    result = inventory_service.add_batch("500", "3.9", note="locked")

    assert not result.ok
    assert isinstance(result.error, StoreError)
    assert result.error.http_status == 503
    assert len(failing_commit) == 3

    assert inventory_service.get_inventory_state().usdt_balance == 0
    assert db.session.query(InventoryLedgerEntry).count() == 0


def test_complete_order_store_failure_applies_nothing(stocked_inventory, monkeypatch):
    order = make_order("300")

    def commit():
        raise OperationalError("COMMIT", None, Exception("database is locked"))

    monkeypatch.setattr(db.session(), "commit", commit)
    result = order_service.complete_order(order.id, "4.5", "3.7")
    monkeypatch.undo()

    assert isinstance(result.error, StoreError)
    assert db.session.get(Order, order.id).status == STATUS_NEW
    state = inventory_service.get_inventory_state()
    assert state.usdt_balance == Decimal("1000")
    assert state.total_cost_ils == Decimal("4000")
    assert inventory_service.reconcile()["balanced"] is True


def test_overflow_becomes_validation_failure(db_session):
    def _op():
        raise OverflowError("Python int too large to convert to SQLite INTEGER")

    result = run_operation(_op, name="overflow")

    assert not result.ok
    assert isinstance(result.error, ValidationError)


def test_unbindable_value_never_escapes(db_session):
    def _op():
        db.session.add(AppSettings(id=1, sell_price_ils_per_usdt=Decimal("1e12")))
        db.session.flush()

    result = run_operation(_op, name="oversized_settings")

    assert not result.ok
    assert db.session.query(AppSettings).count() == 0
