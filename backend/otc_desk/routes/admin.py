# backend/otc_desk/routes/admin.py
"""
Admin desk routes: order queue, completion/cancellation, settings, profit
summary and the destructive full reset.

SECURITY: Every route requires the X-Admin-Secret header (see require_admin).
"""
from flask import Blueprint, current_app, request

from ..decorators import require_admin
from ..extensions import db
from ..models import AppSettings, Order
from ..models.orders import SOURCE_ADMIN
from ..services import (
    fx_service,
    maintenance_service,
    order_service,
    reporting_service,
    settings_service,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_order_complete,
    enforce_rules_settings,
)
from .orders import create_order_from_payload


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

ORDER_COMPLETE_POLICY = ModelValidationPolicy(
    writable_fields={"sell_price_ils_per_usdt", "usd_ils_rate"},
)

ORDER_CANCEL_POLICY = ModelValidationPolicy(
    writable_fields={"note"},
    aliases={"note": "cancel_note"},
)

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"sell_price_ils_per_usdt"},
    required_on_create={"sell_price_ils_per_usdt"},
)

MAX_ORDER_LIMIT = 1000


# ================================
# Orders
# ================================

@admin_bp.get("/orders")
@require_admin
def list_orders_route():
    status = request.args.get("status") or None
    payment_method = request.args.get("payment_method") or None
    limit = request.args.get("limit", default=500, type=int)
    limit = max(1, min(limit, MAX_ORDER_LIMIT))

    try:
        orders = order_service.list_orders(status=status, payment_method=payment_method, limit=limit)
    except ValidationError as e:
        return e.to_response()

    return {"orders": [o.to_dict() for o in orders]}, 200


@admin_bp.get("/orders/<order_id>")
@require_admin
def get_order_route(order_id):
    order = order_service.get_order(order_id)
    if order is None:
        return {"ok": False, "error": "Order not found", "code": "NOT_FOUND"}, 404
    return {"order": order.to_dict()}, 200


@admin_bp.post("/orders")
@require_admin
def create_admin_order_route():
    """Manual order entered by staff (source=admin)."""
    result = create_order_from_payload(request.get_json(silent=True), source=SOURCE_ADMIN)
    if not result.ok:
        return result.error.to_response()
    return {"order": result.value.to_dict()}, 201


@admin_bp.post("/orders/<order_id>/complete")
@require_admin
def complete_order_route(order_id):
    """
    Complete a new order: {sell_price_ils_per_usdt?, usd_ils_rate?}.

    Sell price falls back to the price captured on the order, then to the
    current settings quote. Without an explicit rate the BoI rate is fetched
    before the ledger transaction; if that fails profit_usd stays null.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Order,
            payload=payload,
            policy=ORDER_COMPLETE_POLICY,
            partial=True,
        )
        enforce_rules_order_complete(patch)
    except ValidationError as e:
        return e.to_response()

    order = order_service.get_order(order_id)
    if order is None:
        return {"ok": False, "error": "Order not found", "code": "NOT_FOUND"}, 404

    sell_price = patch.get("sell_price_ils_per_usdt")
    if sell_price is None:
        sell_price = order.sell_price_ils_per_usdt
    if sell_price is None:
        sell_price = settings_service.get_current_sell_price()
    if sell_price is None:
        return ValidationError("sell_price_ils_per_usdt is required (no price on order or in settings)").to_response()

    # End the read transaction before the FX request
    db.session.rollback()

    rate = patch.get("usd_ils_rate")
    if rate is None:
        rate = fx_service.try_get_current_rate()

    result = order_service.complete_order(order_id, sell_price, rate)
    if not result.ok:
        return result.error.to_response()

    return {"order": result.value.to_dict()}, 200


@admin_bp.post("/orders/<order_id>/cancel")
@require_admin
def cancel_order_route(order_id):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Order,
            payload=payload,
            policy=ORDER_CANCEL_POLICY,
            partial=True,
        )
    except ValidationError as e:
        return e.to_response()

    result = order_service.cancel_order(order_id, note=patch.get("note"))
    if not result.ok:
        return result.error.to_response()

    return {"order": result.value.to_dict()}, 200


# ================================
# Settings
# ================================

@admin_bp.get("/settings")
@require_admin
def get_settings_route():
    return {"settings": settings_service.get_settings().to_dict()}, 200


@admin_bp.put("/settings")
@require_admin
def update_settings_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=AppSettings,
            payload=payload,
            policy=SETTINGS_POLICY,
            partial=False,
        )
        enforce_rules_settings(patch)
    except ValidationError as e:
        return e.to_response()

    result = settings_service.set_sell_price(patch["sell_price_ils_per_usdt"])
    if not result.ok:
        return result.error.to_response()

    return {"settings": result.value.to_dict()}, 200


# ================================
# Profits
# ================================

@admin_bp.get("/profits/summary")
@require_admin
def profit_summary_route():
    return reporting_service.dashboard_summary(), 200


# ================================
# Maintenance
# ================================

@admin_bp.post("/reset")
@require_admin
def reset_route():
    """
    Delete all orders and inventory data.

    Body must be {"confirm": "DELETE_ALL_DATA_FOREVER"}; anything else is 403.
    """
    payload = request.get_json(silent=True) or {}
    confirm = payload.get("confirm") if isinstance(payload, dict) else None
    if not maintenance_service.is_reset_confirmed(confirm):
        current_app.logger.warning("reset refused: bad confirmation ip=%s", request.remote_addr)
        return {"error": "Forbidden"}, 403

    result = maintenance_service.reset_all_data(confirm)
    if not result.ok:
        return result.error.to_response()

    current_app.logger.warning("full data reset performed ip=%s", request.remote_addr)
    return {"success": True, "deleted": result.value}, 200
