from decimal import Decimal

from otc_desk.services import inventory_service, settings_service
from otc_desk.services.maintenance_service import RESET_CONFIRM_TEXT


def test_desk_init_and_batch(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["desk", "init"])
    assert result.exit_code == 0
    assert "inventory_state: created" in result.output

    result = runner.invoke(args=["desk", "add-batch", "500", "3.8", "--note", "OTC"])
    assert result.exit_code == 0
    assert inventory_service.get_inventory_state().usdt_balance == Decimal("500")

    result = runner.invoke(args=["desk", "set-price", "4.05"])
    assert result.exit_code == 0
    assert settings_service.get_current_sell_price() == Decimal("4.05")


def test_desk_add_batch_rejects_bad_price(app, db_session):
    result = app.test_cli_runner().invoke(args=["desk", "add-batch", "500", "0"])

    assert result.exit_code == 1
    assert inventory_service.get_inventory_state().usdt_balance == 0


def test_desk_summary_and_reconcile(app, stocked_inventory):
    runner = app.test_cli_runner()

    summary = runner.invoke(args=["desk", "summary"])
    assert summary.exit_code == 0
    assert "1000.00000000 USDT" in summary.output

    reconcile = runner.invoke(args=["desk", "reconcile"])
    assert reconcile.exit_code == 0
    assert "PASS Ledger balanced" in reconcile.output


def test_desk_reset_requires_confirmation(app, stocked_inventory):
    runner = app.test_cli_runner()

    refused = runner.invoke(args=["desk", "reset", "--confirm", "yes"])
    assert refused.exit_code == 1
    assert inventory_service.get_inventory_state().usdt_balance == Decimal("1000")

    done = runner.invoke(args=["desk", "reset", "--confirm", RESET_CONFIRM_TEXT])
    assert done.exit_code == 0
    assert inventory_service.get_inventory_state().usdt_balance == 0
