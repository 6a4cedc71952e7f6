# backend/otc_desk/routes/orders.py
"""
Public order intake.

Anyone can submit an order; it lands in status `new` with source=public and
waits for staff to complete or cancel it.
"""
from flask import Blueprint, current_app, request

from ..errors import OperationResult
from ..models import Order
from ..models.orders import SOURCE_PUBLIC
from ..services import order_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_rules_order_create,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "city", "amount_usdt", "payment_method", "notes"},
    required_on_create={"full_name", "phone", "city", "amount_usdt", "payment_method"},
)


def parse_order_payload(payload) -> dict:
    """Validate an order body; raises ValidationError."""
    patch = validate_payload(
        model=Order,
        payload=payload,
        policy=ORDER_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_order_create(patch)
    return patch


def create_order_from_payload(payload, *, source: str) -> OperationResult:
    """Shared by the public form and the admin manual-order endpoint."""
    try:
        patch = parse_order_payload(payload)
    except ValidationError as e:
        return OperationResult.failure(e)

    return order_service.create_order(
        full_name=patch["full_name"],
        phone=patch["phone"],
        city=patch["city"],
        amount_usdt=patch["amount_usdt"],
        payment_method=patch["payment_method"],
        notes=patch.get("notes"),
        source=source,
    )


@orders_bp.post("")
def create_public_order():
    """Create an order from the public form. Returns only the new id."""
    result = create_order_from_payload(request.get_json(silent=True), source=SOURCE_PUBLIC)
    if not result.ok:
        return result.error.to_response()

    current_app.logger.info("public order received id=%s", result.value.id)
    return {"id": result.value.id}, 201
