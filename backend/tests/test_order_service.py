"""
Order lifecycle tests: creation, completion (inventory + frozen profit),
cancellation and terminal-state immutability.
"""

from decimal import Decimal

import pytest

from conftest import make_order
from otc_desk.errors import (
    InsufficientInventoryError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from otc_desk.extensions import db
from otc_desk.models import InventoryLedgerEntry, Order
from otc_desk.models.inventory import ENTRY_SALE
from otc_desk.models.orders import SOURCE_ADMIN, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NEW
from otc_desk.services import inventory_service, order_service, settings_service


def test_create_order_defaults(db_session):
    order = make_order(notes="  call after 18:00  ")

    assert order.status == STATUS_NEW
    assert order.source == "public"
    assert order.amount_usdt == Decimal("300")
    assert order.notes == "call after 18:00"
    assert order.sell_price_ils_per_usdt is None
    assert order.profit_ils is None
    assert len(order.id) == 36


def test_create_order_snapshots_sell_price(db_session):
    settings_service.set_sell_price("3.95").unwrap()

    order = make_order()

    assert order.sell_price_ils_per_usdt == Decimal("3.95")


@pytest.mark.parametrize("overrides", [
    {"amount_usdt": "0"},
    {"amount_usdt": "-10"},
    {"payment_method": "PAYPAL"},
    {"full_name": "   "},
    {"source": "api"},
])
def test_create_order_rejects_invalid_input(db_session, overrides):
    fields = {
        "full_name": "Dana Levi",
        "phone": "050-1234567",
        "city": "Haifa",
        "amount_usdt": "100",
        "payment_method": "CASH_MEETUP",
    }
    fields.update(overrides)

    result = order_service.create_order(**fields)

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert db_session.query(Order).count() == 0


def test_complete_order_consumes_inventory_and_freezes_profit(stocked_inventory):
    order = make_order("300")

    completed = order_service.complete_order(order.id, "4.5", "3.7").unwrap()

    assert completed.status == STATUS_COMPLETED
    assert completed.completed_at is not None
    assert completed.sell_price_ils_per_usdt == Decimal("4.5")
    assert completed.buy_avg_cost_ils_per_usdt == Decimal("4")
    assert completed.usd_ils_rate == Decimal("3.7")
    assert completed.profit_ils == Decimal("150")
    assert completed.profit_usd == Decimal("40.54054054")

    state = inventory_service.get_inventory_state()
    assert state.usdt_balance == Decimal("700")
    assert state.total_cost_ils == Decimal("2800")
    assert state.avg_cost_ils_per_usdt == Decimal("4")

    sale = db.session.query(InventoryLedgerEntry).filter_by(entry_type=ENTRY_SALE).one()
    assert sale.order_id == order.id
    assert sale.amount_usdt == Decimal("-300")
    assert sale.cost_delta_ils == Decimal("-1200")


def test_scenario_sale_then_breakage(stocked_inventory):
    order = make_order("300")
    order_service.complete_order(order.id, "4.5", "3.7").unwrap()

    entry = inventory_service.adjust_inventory("-50", "breakage").unwrap()

    assert entry.cost_delta_ils == Decimal("-200")
    state = inventory_service.get_inventory_state()
    assert state.usdt_balance == Decimal("650")
    assert state.total_cost_ils == Decimal("2600")
    assert state.avg_cost_ils_per_usdt == Decimal("4")
    assert inventory_service.reconcile()["balanced"] is True


def test_complete_without_rate_leaves_profit_usd_null(stocked_inventory):
    order = make_order("100")

    completed = order_service.complete_order(order.id, "4.2", None).unwrap()

    assert completed.profit_ils == Decimal("20")
    assert completed.profit_usd is None
    assert completed.usd_ils_rate is None


def test_complete_with_non_positive_rate_treated_as_missing(stocked_inventory):
    order = make_order("100")

    completed = order_service.complete_order(order.id, "4.2", "0").unwrap()

    assert completed.profit_usd is None


def test_complete_can_record_a_loss(stocked_inventory):
    order = make_order("10")

    completed = order_service.complete_order(order.id, "3.5", "3.5").unwrap()

    assert completed.profit_ils == Decimal("-5")
    assert completed.profit_usd == Decimal("-1.42857143")


def test_insufficient_inventory_leaves_everything_untouched(stocked_inventory):
    order = make_order("1500")

    result = order_service.complete_order(order.id, "4.5", "3.7")

    assert not result.ok
    assert isinstance(result.error, InsufficientInventoryError)
    db.session.expire_all()
    reloaded = order_service.get_order(order.id)
    assert reloaded.status == STATUS_NEW
    assert reloaded.profit_ils is None
    state = inventory_service.get_inventory_state()
    assert state.usdt_balance == Decimal("1000")
    assert state.total_cost_ils == Decimal("4000")
    assert db.session.query(InventoryLedgerEntry).count() == 1


def test_complete_rejects_bad_sell_price(stocked_inventory):
    order = make_order("10")

    result = order_service.complete_order(order.id, "0", "3.7")

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert order_service.get_order(order.id).status == STATUS_NEW


def test_complete_unknown_order(stocked_inventory):
    result = order_service.complete_order("00000000-0000-0000-0000-000000000000", "4.5", "3.7")

    assert not result.ok
    assert isinstance(result.error, NotFoundError)
    assert result.error.http_status == 404


def test_double_complete_is_rejected(stocked_inventory):
    order = make_order("100")
    order_service.complete_order(order.id, "4.5", "3.7").unwrap()

    result = order_service.complete_order(order.id, "4.5", "3.7")

    assert not result.ok
    assert isinstance(result.error, InvalidStateError)
    assert inventory_service.get_inventory_state().usdt_balance == Decimal("900")


def test_cancel_new_order(db_session):
    order = make_order("100")

    cancelled = order_service.cancel_order(order.id, "customer changed mind").unwrap()

    assert cancelled.status == STATUS_CANCELLED
    assert cancelled.cancelled_at is not None
    assert cancelled.cancel_note == "customer changed mind"
    assert db_session.query(InventoryLedgerEntry).count() == 0


def test_cancelled_order_cannot_be_completed(stocked_inventory):
    order = make_order("100")
    order_service.cancel_order(order.id).unwrap()

    result = order_service.complete_order(order.id, "4.5", "3.7")

    assert not result.ok
    assert isinstance(result.error, InvalidStateError)
    assert inventory_service.get_inventory_state().usdt_balance == Decimal("1000")


def test_completed_order_cannot_be_cancelled(stocked_inventory):
    order = make_order("100")
    order_service.complete_order(order.id, "4.5", "3.7").unwrap()

    result = order_service.cancel_order(order.id)

    assert not result.ok
    assert isinstance(result.error, InvalidStateError)
    assert order_service.get_order(order.id).status == STATUS_COMPLETED


def test_terminal_order_rows_are_frozen(stocked_inventory):
    order = make_order("100")
    order_service.complete_order(order.id, "4.5", "3.7").unwrap()

    completed = order_service.get_order(order.id)
    completed.profit_ils = Decimal("999")
    with pytest.raises(InvalidStateError):
        db.session.flush()
    db.session.rollback()

    assert order_service.get_order(order.id).profit_ils == Decimal("50")


def test_list_orders_filters(db_session):
    make_order("10", payment_method="BIT")
    second = make_order("20", payment_method="CASH_MEETUP", source=SOURCE_ADMIN)
    order_service.cancel_order(second.id).unwrap()

    assert len(order_service.list_orders()) == 2
    assert [o.amount_usdt for o in order_service.list_orders(status=STATUS_NEW)] == [Decimal("10")]
    assert [o.amount_usdt for o in order_service.list_orders(payment_method="CASH_MEETUP")] == [Decimal("20")]

    with pytest.raises(ValidationError):
        order_service.list_orders(status="archived")


def test_profit_beyond_storable_range_is_rejected(stocked_inventory):
    order = make_order("1000")

    result = order_service.complete_order(order.id, "90000000000", "3.7")

    assert isinstance(result.error, ValidationError)
    assert db.session.get(Order, order.id).status == STATUS_NEW
    assert inventory_service.get_inventory_state().usdt_balance == Decimal("1000")
    assert db.session.query(InventoryLedgerEntry).filter_by(entry_type=ENTRY_SALE).count() == 0
