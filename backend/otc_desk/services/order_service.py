"""
Order lifecycle service.

States: new (initial) -> completed | cancelled (terminal, exactly once).
Completion consumes inventory at the current average cost and freezes the
profit inputs on the order in the same transaction; cancellation has no
inventory effect. There is no hard delete.
"""

from __future__ import annotations

import logging

from ..db_types import MAX_STORED_VALUE, decimal_str, fits_column
from ..errors import InvalidStateError, NotFoundError, OperationResult, ValidationError
from ..extensions import db
from ..models import Order
from ..models.orders import (
    STATUS_NEW,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    ORDER_STATUSES,
    PAYMENT_METHODS,
    SOURCE_PUBLIC,
    SOURCE_ADMIN,
)
from ..time_utils import utcnow
from ..validation import MAX_AMOUNT_USDT, clean_text, require_decimal, require_positive_decimal
from . import inventory_service, notify_service, settings_service
from .concurrency import lock_for_update, run_operation
from .profit_service import compute_profit

logger = logging.getLogger(__name__)


def _load_order(order_id: str, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=str(order_id))
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order(order_id: str) -> Order | None:
    return db.session.query(Order).filter_by(id=str(order_id)).first()


def list_orders(
    *,
    status: str | None = None,
    payment_method: str | None = None,
    limit: int = 500,
) -> list[Order]:
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    q = db.session.query(Order)
    if status is not None:
        q = q.filter(Order.status == status)
    if payment_method is not None:
        q = q.filter(Order.payment_method == payment_method)
    return q.order_by(Order.created_at.desc()).limit(limit).all()


def create_order(
    *,
    full_name: str,
    phone: str,
    city: str,
    amount_usdt,
    payment_method: str,
    notes: str | None = None,
    source: str = SOURCE_PUBLIC,
) -> OperationResult:
    """
    Create an order in status `new`.

    Snapshots the current sell price from AppSettings (None when unset).
    Sends a new-order notification after commit; a failed notification never
    affects the order.
    """
    def _op():
        name = clean_text(full_name)
        phone_clean = clean_text(phone)
        city_clean = clean_text(city)
        missing = [k for k, v in (("full_name", name), ("phone", phone_clean), ("city", city_clean)) if not v]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        amount = require_positive_decimal(amount_usdt, "amount_usdt")
        if amount > MAX_AMOUNT_USDT:
            raise ValidationError(f"amount_usdt cannot exceed {MAX_AMOUNT_USDT}")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        if source not in (SOURCE_PUBLIC, SOURCE_ADMIN):
            raise ValidationError("source must be public or admin")

        order = Order(
            full_name=name,
            phone=phone_clean,
            city=city_clean,
            amount_usdt=amount,
            payment_method=payment_method,
            notes=clean_text(notes),
            source=source,
            status=STATUS_NEW,
            sell_price_ils_per_usdt=settings_service.get_current_sell_price(),
        )
        db.session.add(order)
        db.session.commit()

        logger.info("order created id=%s amount_usdt=%s source=%s", order.id, amount, source)
        return order

    result = run_operation(_op, name="create_order")
    if result.ok:
        try:
            notify_service.notify_new_order(result.value)
        except Exception:
            logger.exception("new-order notification failed for order %s", result.value.id)
    return result


def complete_order(order_id: str, sell_price_ils_per_usdt, usd_ils_rate=None) -> OperationResult:
    """
    Complete a `new` order.

    The USD/ILS rate must already be known (fetched by the caller before this
    call); None or a non-positive rate leaves profit_usd null.

    Fails (nothing applied) with:
    - ValidationError: sell price <= 0
    - NotFoundError: unknown order
    - InvalidStateError: order is not `new`
    - InsufficientInventoryError: balance < order amount
    Success value: the completed Order.
    """
    def _op():
        sell_price = require_positive_decimal(sell_price_ils_per_usdt, "sell_price_ils_per_usdt")
        rate = None
        if usd_ils_rate is not None:
            rate = require_decimal(usd_ils_rate, "usd_ils_rate")
            if rate <= 0:
                rate = None

        order = _load_order(order_id, lock=True)
        if order.status != STATUS_NEW:
            raise InvalidStateError(
                f"Order is {order.status}; only new orders can be completed",
                details={"status": order.status},
            )

        avg_cost = inventory_service.consume_for_sale(
            amount_usdt=order.amount_usdt,
            order_id=order.id,
            note=f"Order {order.id}",
        )
        margin = order.amount_usdt * (sell_price - avg_cost)
        if not fits_column(margin) or (rate is not None and not fits_column(margin / rate)):
            raise ValidationError(
                "profit would exceed the storable range",
                details={"max": decimal_str(MAX_STORED_VALUE)},
            )
        profit = compute_profit(
            amount_usdt=order.amount_usdt,
            sell_price_ils_per_usdt=sell_price,
            buy_avg_cost_ils_per_usdt=avg_cost,
            usd_ils_rate=rate,
        )

        order.sell_price_ils_per_usdt = sell_price
        order.buy_avg_cost_ils_per_usdt = avg_cost
        order.usd_ils_rate = rate
        order.profit_ils = profit.profit_ils
        order.profit_usd = profit.profit_usd
        order.completed_at = utcnow()
        order.status = STATUS_COMPLETED
        db.session.commit()

        logger.info(
            "order completed id=%s amount_usdt=%s sell=%s avg_cost=%s profit_ils=%s profit_usd=%s",
            order.id, order.amount_usdt, sell_price, avg_cost,
            decimal_str(profit.profit_ils), decimal_str(profit.profit_usd),
        )
        return order

    return run_operation(_op, name="complete_order")


def cancel_order(order_id: str, note: str | None = None) -> OperationResult:
    """
    Cancel a `new` order (the admin "delete" action). No inventory effect.

    Fails with NotFoundError / InvalidStateError. Success value: the Order.
    """
    def _op():
        order = _load_order(order_id, lock=True)
        if order.status != STATUS_NEW:
            raise InvalidStateError(
                f"Order is {order.status}; only new orders can be cancelled",
                details={"status": order.status},
            )

        order.status = STATUS_CANCELLED
        order.cancelled_at = utcnow()
        order.cancel_note = clean_text(note)
        db.session.commit()

        logger.info("order cancelled id=%s", order.id)
        return order

    return run_operation(_op, name="cancel_order")
