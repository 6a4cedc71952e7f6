from __future__ import annotations

from sqlalchemy import event

from ..db_types import ScaledDecimal, ZERO, quantize, decimal_str
from ..errors import InvalidStateError
from ..extensions import db
from ..time_utils import to_utc_z


INVENTORY_STATE_ID = 1

ENTRY_PURCHASE = "PURCHASE"
ENTRY_ADJUSTMENT = "ADJUSTMENT"
ENTRY_SALE = "SALE"
ENTRY_TYPES = (ENTRY_PURCHASE, ENTRY_ADJUSTMENT, ENTRY_SALE)


class InventoryState(db.Model):
    """
    Aggregate USDT holdings and their ILS cost basis (single row, id=1).

    Only inventory_service mutates this row. The average cost is derived from
    the two running scalars on every read and is never stored.
    """
    __tablename__ = "inventory_state"

    id = db.Column(db.Integer, primary_key=True)

    usdt_balance = db.Column(ScaledDecimal(), nullable=False, default=ZERO)
    total_cost_ils = db.Column(ScaledDecimal(), nullable=False, default=ZERO)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def avg_cost_ils_per_usdt(self):
        balance = self.usdt_balance or ZERO
        if balance <= 0:
            return ZERO
        return quantize((self.total_cost_ils or ZERO) / balance)

    def __repr__(self) -> str:
        return f"<InventoryState balance={self.usdt_balance} total_cost={self.total_cost_ils}>"

    def to_dict(self) -> dict:
        return {
            "usdt_balance": decimal_str(self.usdt_balance),
            "total_cost_ils": decimal_str(self.total_cost_ils),
            "avg_cost_ils_per_usdt": decimal_str(self.avg_cost_ils_per_usdt),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLedgerEntry(db.Model):
    """
    One inventory-affecting event. Append-only.

    amount_usdt and cost_delta_ils are signed; summing them over all entries
    reproduces InventoryState.usdt_balance and total_cost_ils.
    """
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        db.Index("ix_inventory_ledger_type_created", "entry_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    entry_type = db.Column(db.String(16), nullable=False, index=True)

    amount_usdt = db.Column(ScaledDecimal(), nullable=False)
    # Purchase price for PURCHASE, cost per unit applied for ADJUSTMENT/SALE
    unit_price_ils_per_usdt = db.Column(ScaledDecimal(), nullable=True)
    cost_delta_ils = db.Column(ScaledDecimal(), nullable=False)
    balance_after_usdt = db.Column(ScaledDecimal(), nullable=False)

    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=True, index=True)
    note = db.Column(db.String(500), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<InventoryLedgerEntry id={self.id} type={self.entry_type} amount={self.amount_usdt}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_type": self.entry_type,
            "amount_usdt": decimal_str(self.amount_usdt),
            "unit_price_ils_per_usdt": decimal_str(self.unit_price_ils_per_usdt),
            "cost_delta_ils": decimal_str(self.cost_delta_ils),
            "balance_after_usdt": decimal_str(self.balance_after_usdt),
            "order_id": self.order_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(InventoryLedgerEntry, "before_update")
def _block_ledger_update(mapper, connection, target):
    raise InvalidStateError(f"inventory ledger entry {target.id} is append-only")


@event.listens_for(InventoryLedgerEntry, "before_delete")
def _block_ledger_delete(mapper, connection, target):
    raise InvalidStateError(f"inventory ledger entry {target.id} is append-only")
