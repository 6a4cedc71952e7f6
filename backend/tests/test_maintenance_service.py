from decimal import Decimal

from conftest import make_order
from otc_desk.errors import ValidationError
from otc_desk.models import AppSettings, InventoryLedgerEntry, InventoryState, Order
from otc_desk.services import inventory_service, maintenance_service, order_service, settings_service
from otc_desk.services.maintenance_service import RESET_CONFIRM_TEXT


def test_reset_deletes_orders_and_inventory(stocked_inventory):
    settings_service.set_sell_price("4.1").unwrap()
    order = make_order("100")
    order_service.complete_order(order.id, "4.5", "3.7").unwrap()
    make_order("5")

    counts = maintenance_service.reset_all_data(RESET_CONFIRM_TEXT).unwrap()

    assert counts == {"orders": 2, "inventory_ledger": 2, "inventory_state": 1}
    assert Order.query.count() == 0
    assert InventoryLedgerEntry.query.count() == 0
    assert InventoryState.query.count() == 0
    assert inventory_service.get_inventory_state().usdt_balance == 0
    # settings survive a reset
    assert settings_service.get_current_sell_price() == Decimal("4.1")


def test_reset_twice_succeeds(stocked_inventory):
    maintenance_service.reset_all_data(RESET_CONFIRM_TEXT).unwrap()

    counts = maintenance_service.reset_all_data(RESET_CONFIRM_TEXT).unwrap()

    assert counts == {"orders": 0, "inventory_ledger": 0, "inventory_state": 0}


def test_reset_requires_exact_confirmation(stocked_inventory):
    for confirm in (None, "", "delete_all_data_forever", RESET_CONFIRM_TEXT + " "):
        result = maintenance_service.reset_all_data(confirm)
        assert not result.ok
        assert isinstance(result.error, ValidationError)

    assert InventoryLedgerEntry.query.count() == 1


def test_ledger_works_after_reset(stocked_inventory):
    maintenance_service.reset_all_data(RESET_CONFIRM_TEXT).unwrap()

    inventory_service.add_batch("10", "3.9").unwrap()

    state = inventory_service.get_inventory_state()
    assert state.usdt_balance == Decimal("10")
    assert state.avg_cost_ils_per_usdt == Decimal("3.9")


def test_initialize_store_is_idempotent(db_session):
    assert maintenance_service.initialize_store() == {"inventory_state": True, "app_settings": True}
    assert maintenance_service.initialize_store() == {"inventory_state": False, "app_settings": False}
    assert AppSettings.query.count() == 1
    assert InventoryState.query.count() == 1
