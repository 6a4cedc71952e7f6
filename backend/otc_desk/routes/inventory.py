# backend/otc_desk/routes/inventory.py
"""
Inventory management routes (admin only).

- Batches record purchased USDT at a buy price (blends the average cost).
- Adjustments correct the balance; negative ones need a note.
- Sales never go through here: they are written by order completion.
"""
from flask import Blueprint, request

from ..decorators import require_admin
from ..models import InventoryLedgerEntry
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_inventory_batch,
    enforce_rules_inventory_adjust,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/admin/inventory")

INVENTORY_BATCH_POLICY = ModelValidationPolicy(
    writable_fields={"amount_usdt", "buy_price_ils_per_usdt", "note"},
    required_on_create={"amount_usdt", "buy_price_ils_per_usdt"},
    aliases={"buy_price_ils_per_usdt": "unit_price_ils_per_usdt"},
)

INVENTORY_ADJUST_POLICY = ModelValidationPolicy(
    writable_fields={"amount_usdt", "note", "unit_cost_ils_per_usdt"},
    required_on_create={"amount_usdt"},
    aliases={"unit_cost_ils_per_usdt": "unit_price_ils_per_usdt"},
)

MAX_LEDGER_LIMIT = 1000


@inventory_bp.get("")
@require_admin
def get_inventory_route():
    return {"inventory": inventory_service.get_inventory_summary()}, 200


@inventory_bp.get("/ledger")
@require_admin
def list_ledger_route():
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, MAX_LEDGER_LIMIT))
    entry_type = request.args.get("entry_type") or None

    try:
        entries = inventory_service.list_ledger_entries(limit=limit, entry_type=entry_type)
    except ValidationError as e:
        return e.to_response()

    return {"entries": [entry.to_dict() for entry in entries]}, 200


@inventory_bp.post("/batches")
@require_admin
def add_batch_route():
    """Record a purchased batch: {amount_usdt, buy_price_ils_per_usdt, note?}."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryLedgerEntry,
            payload=payload,
            policy=INVENTORY_BATCH_POLICY,
            partial=False,
        )
        enforce_rules_inventory_batch(patch)
    except ValidationError as e:
        return e.to_response()

    result = inventory_service.add_batch(
        patch["amount_usdt"],
        patch["buy_price_ils_per_usdt"],
        note=patch.get("note"),
    )
    if not result.ok:
        return result.error.to_response()

    return {
        "entry": result.value.to_dict(),
        "inventory": inventory_service.get_inventory_summary(),
    }, 201


@inventory_bp.post("/adjustments")
@require_admin
def adjust_inventory_route():
    """
    Manual correction: {amount_usdt, note, unit_cost_ils_per_usdt?}.

    amount_usdt is signed. Negative amounts leave at the average cost and
    need a note; positive amounts blend at unit_cost_ils_per_usdt when given.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryLedgerEntry,
            payload=payload,
            policy=INVENTORY_ADJUST_POLICY,
            partial=False,
        )
        enforce_rules_inventory_adjust(patch)
    except ValidationError as e:
        return e.to_response()

    result = inventory_service.adjust_inventory(
        patch["amount_usdt"],
        patch.get("note"),
        unit_cost_ils_per_usdt=patch.get("unit_cost_ils_per_usdt"),
    )
    if not result.ok:
        return result.error.to_response()

    return {
        "entry": result.value.to_dict(),
        "inventory": inventory_service.get_inventory_summary(),
    }, 201
