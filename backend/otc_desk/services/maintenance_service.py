# Overview: Store bootstrap and destructive administrative maintenance (full data reset for test/staging).

from __future__ import annotations

import hmac
import logging

from ..db_types import ZERO
from ..errors import OperationResult, ValidationError
from ..extensions import db
from ..models import AppSettings, InventoryLedgerEntry, InventoryState, Order
from ..models.inventory import INVENTORY_STATE_ID
from ..models.settings import APP_SETTINGS_ID
from .concurrency import run_operation

logger = logging.getLogger(__name__)

RESET_CONFIRM_TEXT = "DELETE_ALL_DATA_FOREVER"


def is_reset_confirmed(confirm) -> bool:
    return isinstance(confirm, str) and hmac.compare_digest(confirm, RESET_CONFIRM_TEXT)


def reset_all_data(confirm) -> OperationResult:
    """
    Irreversibly delete all orders, the inventory ledger and inventory state.

    `confirm` must equal RESET_CONFIRM_TEXT exactly. Settings are kept.
    Idempotent: resetting an empty store succeeds.
    Success value: dict of deleted row counts.
    """
    def _op():
        if not is_reset_confirmed(confirm):
            raise ValidationError("Invalid confirmation")

        # Ledger rows reference orders; delete them first
        ledger = db.session.query(InventoryLedgerEntry).delete(synchronize_session=False)
        orders = db.session.query(Order).delete(synchronize_session=False)
        state = db.session.query(InventoryState).delete(synchronize_session=False)
        db.session.commit()

        logger.warning("ALL DATA RESET: orders=%d ledger=%d state=%d", orders, ledger, state)
        return {"orders": orders, "inventory_ledger": ledger, "inventory_state": state}

    return run_operation(_op, name="reset_all_data")


def initialize_store() -> dict:
    """
    Create the inventory and settings singleton rows when missing.

    Idempotent. Returns which rows were created.
    """
    created = {"inventory_state": False, "app_settings": False}
    if db.session.get(InventoryState, INVENTORY_STATE_ID) is None:
        db.session.add(InventoryState(id=INVENTORY_STATE_ID, usdt_balance=ZERO, total_cost_ils=ZERO))
        created["inventory_state"] = True
    if db.session.get(AppSettings, APP_SETTINGS_ID) is None:
        db.session.add(AppSettings(id=APP_SETTINGS_ID, sell_price_ils_per_usdt=None))
        created["app_settings"] = True
    db.session.commit()
    return created
