from __future__ import annotations

import uuid

from sqlalchemy import event, inspect

from ..db_types import ScaledDecimal, decimal_str
from ..errors import InvalidStateError
from ..extensions import db
from ..time_utils import to_utc_z


STATUS_NEW = "new"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (STATUS_NEW, STATUS_COMPLETED, STATUS_CANCELLED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

PAYMENT_METHODS = ("BIT", "CASH_MEETUP", "CASH_WITHOUT_CARD")

SOURCE_PUBLIC = "public"
SOURCE_ADMIN = "admin"


def _new_order_id() -> str:
    return str(uuid.uuid4())


class Order(db.Model):
    """
    Customer purchase request for USDT.

    Lifecycle: new -> completed | cancelled, exactly once. Terminal orders are
    never modified and never physically deleted (cancel is the only removal).
    Profit columns stay null until completion.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_status_completed", "status", "completed_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_order_id)

    full_name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(40), nullable=False)
    city = db.Column(db.String(120), nullable=False)

    amount_usdt = db.Column(ScaledDecimal(), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    source = db.Column(db.String(16), nullable=False, default=SOURCE_PUBLIC)

    status = db.Column(db.String(16), nullable=False, default=STATUS_NEW, index=True)

    # Captured from AppSettings at creation (may be null), fixed at completion
    sell_price_ils_per_usdt = db.Column(ScaledDecimal(), nullable=True)

    # Captured at completion
    buy_avg_cost_ils_per_usdt = db.Column(ScaledDecimal(), nullable=True)
    usd_ils_rate = db.Column(ScaledDecimal(), nullable=True)
    profit_ils = db.Column(ScaledDecimal(), nullable=True)
    profit_usd = db.Column(ScaledDecimal(), nullable=True)

    cancel_note = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} amount_usdt={self.amount_usdt}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "city": self.city,
            "amount_usdt": decimal_str(self.amount_usdt),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "source": self.source,
            "status": self.status,
            "sell_price_ils_per_usdt": decimal_str(self.sell_price_ils_per_usdt),
            "buy_avg_cost_ils_per_usdt": decimal_str(self.buy_avg_cost_ils_per_usdt),
            "usd_ils_rate": decimal_str(self.usd_ils_rate),
            "profit_ils": decimal_str(self.profit_ils),
            "profit_usd": decimal_str(self.profit_usd),
            "cancel_note": self.cancel_note,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }


@event.listens_for(Order, "before_update")
def _block_terminal_order_update(mapper, connection, target):
    """
    Completed and cancelled orders are frozen.

    The transition itself (new -> terminal) is allowed; any later change is not.
    """
    status_history = inspect(target).attrs.status.history
    if status_history.deleted:
        previous = status_history.deleted[0]
    else:
        previous = target.status

    if previous not in TERMINAL_STATUSES:
        return

    for attr in inspect(target).attrs:
        if attr.history.has_changes():
            raise InvalidStateError(
                f"order {target.id} is {previous} and cannot be modified",
                details={"field": attr.key},
            )
