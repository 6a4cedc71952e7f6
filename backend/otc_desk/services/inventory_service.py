# Overview: Service-layer operations for the USDT inventory ledger; encapsulates business logic and database work.

# backend/otc_desk/services/inventory_service.py

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func

from ..db_types import MAX_STORED_VALUE, ZERO, decimal_str, fits_column, quantize
from ..errors import InsufficientInventoryError, OperationResult, ValidationError
from ..extensions import db
from ..models import InventoryState, InventoryLedgerEntry
from ..models.inventory import (
    INVENTORY_STATE_ID,
    ENTRY_PURCHASE,
    ENTRY_ADJUSTMENT,
    ENTRY_SALE,
    ENTRY_TYPES,
)
from ..validation import require_decimal, require_positive_decimal, clean_text
from .concurrency import lock_for_update, run_operation
"""
Inventory Ledger Invariants (authoritative)

Cost model: moving weighted average.
- InventoryState holds two running scalars: usdt_balance and total_cost_ils.
- avg_cost_ils_per_usdt = total_cost_ils / usdt_balance (0 when empty), derived on read.
- PURCHASE blends into the average: balance += q, total_cost += q * price.
- SALE and negative ADJUST deplete at the current average:
    total_cost -= q * avg   (the whole remaining cost when the balance reaches 0)
  so the average of the remaining units is unchanged.
- Positive ADJUST blends at an explicit unit cost when one is given, otherwise
  it is valued at the current average (average unchanged). Against an empty
  inventory the unit cost is mandatory.

Business invariants:
- usdt_balance never goes negative; a depletion larger than the balance fails
  with InsufficientInventoryError and changes nothing.
- Negative adjustments require a note.
- Every mutation appends one InventoryLedgerEntry in the same DB transaction;
  SUM(amount_usdt) == usdt_balance and SUM(cost_delta_ils) == total_cost_ils.
"""


logger = logging.getLogger(__name__)


def _get_state(*, lock: bool = False) -> InventoryState:
    """Load the singleton row, creating it on first use (inside the caller's transaction)."""
    query = db.session.query(InventoryState).filter_by(id=INVENTORY_STATE_ID)
    if lock:
        query = lock_for_update(query)
    state = query.first()
    if state is None:
        state = InventoryState(id=INVENTORY_STATE_ID, usdt_balance=ZERO, total_cost_ils=ZERO)
        db.session.add(state)
        db.session.flush()
    return state


def _depletion_cost(state: InventoryState, amount: Decimal) -> Decimal:
    """ILS cost leaving inventory with `amount` USDT at the current average."""
    if amount >= state.usdt_balance:
        return state.total_cost_ils
    return min(quantize(amount * state.avg_cost_ils_per_usdt), state.total_cost_ils)


def _apply(
    state: InventoryState,
    *,
    entry_type: str,
    amount_delta: Decimal,
    cost_delta: Decimal,
    unit_price: Decimal | None,
    note: str | None,
    order_id: str | None = None,
) -> InventoryLedgerEntry:
    balance = state.usdt_balance + amount_delta
    total_cost = state.total_cost_ils + cost_delta
    if not all(fits_column(v) for v in (balance, total_cost, cost_delta, unit_price)):
        raise ValidationError(
            "inventory totals would exceed the storable range",
            details={"max": decimal_str(MAX_STORED_VALUE)},
        )
    cost_delta = quantize(cost_delta)
    state.usdt_balance = quantize(balance)
    state.total_cost_ils = quantize(total_cost)

    entry = InventoryLedgerEntry(
        entry_type=entry_type,
        amount_usdt=amount_delta,
        unit_price_ils_per_usdt=unit_price,
        cost_delta_ils=cost_delta,
        balance_after_usdt=state.usdt_balance,
        order_id=order_id,
        note=note,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def get_inventory_state() -> InventoryState:
    """
    Read-only view of the singleton.

    Returns an unsaved zero state when nothing has been recorded yet, so reads
    never write.
    """
    state = db.session.query(InventoryState).filter_by(id=INVENTORY_STATE_ID).first()
    if state is None:
        return InventoryState(id=INVENTORY_STATE_ID, usdt_balance=ZERO, total_cost_ils=ZERO)
    return state


def get_inventory_summary() -> dict:
    state = get_inventory_state()
    summary = state.to_dict()
    summary["ledger_entry_count"] = db.session.query(func.count(InventoryLedgerEntry.id)).scalar() or 0
    return summary


def list_ledger_entries(*, limit: int = 200, entry_type: str | None = None) -> list[InventoryLedgerEntry]:
    if entry_type is not None and entry_type not in ENTRY_TYPES:
        raise ValidationError(f"entry_type must be one of {', '.join(ENTRY_TYPES)}")

    q = db.session.query(InventoryLedgerEntry)
    if entry_type is not None:
        q = q.filter(InventoryLedgerEntry.entry_type == entry_type)
    return q.order_by(
        InventoryLedgerEntry.created_at.desc(),
        InventoryLedgerEntry.id.desc(),
    ).limit(limit).all()


def reconcile() -> dict:
    """Compare ledger sums with the running scalars."""
    row = db.session.query(
        func.coalesce(func.sum(InventoryLedgerEntry.amount_usdt), 0).label("usdt"),
        func.coalesce(func.sum(InventoryLedgerEntry.cost_delta_ils), 0).label("cost"),
    ).one()
    ledger_usdt = row.usdt if row.usdt is not None else ZERO
    ledger_cost = row.cost if row.cost is not None else ZERO

    state = get_inventory_state()
    return {
        "ledger_usdt": decimal_str(ledger_usdt),
        "state_usdt": decimal_str(state.usdt_balance),
        "ledger_cost_ils": decimal_str(ledger_cost),
        "state_cost_ils": decimal_str(state.total_cost_ils),
        "balanced": ledger_usdt == state.usdt_balance and ledger_cost == state.total_cost_ils,
    }


def _add_batch_inner(
    state: InventoryState,
    *,
    amount: Decimal,
    price: Decimal,
    note: str | None,
) -> InventoryLedgerEntry:
    """Core PURCHASE logic without locking, retry, or commit."""
    return _apply(
        state,
        entry_type=ENTRY_PURCHASE,
        amount_delta=amount,
        cost_delta=amount * price,
        unit_price=price,
        note=note,
    )


def add_batch(amount_usdt, buy_price_ils_per_usdt, note: str | None = None) -> OperationResult:
    """
    Record a purchased batch of USDT.

    Fails with ValidationError if amount or price <= 0.
    Success value: the PURCHASE ledger entry.
    """
    def _op():
        amount = require_positive_decimal(amount_usdt, "amount_usdt")
        price = require_positive_decimal(buy_price_ils_per_usdt, "buy_price_ils_per_usdt")

        state = _get_state(lock=True)
        entry = _add_batch_inner(state, amount=amount, price=price, note=clean_text(note))
        db.session.commit()

        logger.info(
            "inventory batch added amount=%s price=%s balance=%s avg_cost=%s",
            amount, price, state.usdt_balance, state.avg_cost_ils_per_usdt,
        )
        return entry

    return run_operation(_op, name="add_batch")


def _adjust_inventory_inner(
    state: InventoryState,
    *,
    amount: Decimal,
    note: str | None,
    unit_cost: Decimal | None,
) -> InventoryLedgerEntry:
    """Core ADJUST logic without locking, retry, or commit."""
    if amount < 0:
        if not note:
            raise ValidationError("note is required for a negative adjustment")
        if unit_cost is not None:
            raise ValidationError("unit_cost_ils_per_usdt applies to positive adjustments only")
        quantity = -amount
        if quantity > state.usdt_balance:
            raise InsufficientInventoryError(
                "adjustment would make the USDT balance negative",
                details={"requested": decimal_str(quantity), "balance": decimal_str(state.usdt_balance)},
            )
        unit = state.avg_cost_ils_per_usdt
        cost_delta = -_depletion_cost(state, quantity)
    else:
        if unit_cost is None:
            if state.usdt_balance <= 0:
                raise ValidationError("unit_cost_ils_per_usdt is required when inventory is empty")
            unit = state.avg_cost_ils_per_usdt
        else:
            unit = unit_cost
        cost_delta = amount * unit

    return _apply(
        state,
        entry_type=ENTRY_ADJUSTMENT,
        amount_delta=amount,
        cost_delta=cost_delta,
        unit_price=unit,
        note=note,
    )


def adjust_inventory(
    amount_usdt,
    note: str | None = None,
    *,
    unit_cost_ils_per_usdt=None,
) -> OperationResult:
    """
    Manual correction of the USDT balance (found funds, breakage, write-offs).

    - amount must be non-zero
    - negative amounts need a note and may not exceed the balance
    - positive amounts blend at unit_cost_ils_per_usdt when given, otherwise
      at the current average cost
    Success value: the ADJUSTMENT ledger entry.
    """
    def _op():
        amount = require_decimal(amount_usdt, "amount_usdt")
        if amount == 0:
            raise ValidationError("amount_usdt must be non-zero")
        unit_cost = None
        if unit_cost_ils_per_usdt is not None:
            unit_cost = require_positive_decimal(unit_cost_ils_per_usdt, "unit_cost_ils_per_usdt")

        state = _get_state(lock=True)
        entry = _adjust_inventory_inner(state, amount=amount, note=clean_text(note), unit_cost=unit_cost)
        db.session.commit()

        logger.info(
            "inventory adjusted amount=%s cost_delta=%s balance=%s avg_cost=%s",
            amount, entry.cost_delta_ils, state.usdt_balance, state.avg_cost_ils_per_usdt,
        )
        return entry

    return run_operation(_op, name="adjust_inventory")


def consume_for_sale(*, amount_usdt: Decimal, order_id: str, note: str | None = None) -> Decimal:
    """
    Deplete inventory for a completed order and return the average cost used.

    Runs inside the caller's transaction (order completion): no commit, no
    retry. Raises InsufficientInventoryError before touching any state.
    """
    state = _get_state(lock=True)
    if amount_usdt > state.usdt_balance:
        raise InsufficientInventoryError(
            "insufficient USDT inventory for this order",
            details={"requested": decimal_str(amount_usdt), "balance": decimal_str(state.usdt_balance)},
        )

    avg_cost = state.avg_cost_ils_per_usdt
    _apply(
        state,
        entry_type=ENTRY_SALE,
        amount_delta=-amount_usdt,
        cost_delta=-_depletion_cost(state, amount_usdt),
        unit_price=avg_cost,
        note=note,
        order_id=order_id,
    )
    return avg_cost
