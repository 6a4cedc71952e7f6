# Overview: Service-layer operations for reporting; selects orders for a period and aggregates profit.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryState, Order
from ..models.orders import ORDER_STATUSES, STATUS_COMPLETED
from ..time_utils import day_range, parse_day, utcnow
from .inventory_service import get_inventory_state
from .profit_service import ProfitSummary, calculate_profit_summary


STATUS_ALL = "all"


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


@dataclass
class ProfitReport:
    start: date
    end: date
    status: str
    orders: list[Order]
    summary: ProfitSummary
    inventory: InventoryState

    @property
    def completed_orders(self) -> list[Order]:
        return [o for o in self.orders if o.status == STATUS_COMPLETED]


def resolve_range(start: str | None, end: str | None, *, today: date | None = None) -> tuple[date, date]:
    """
    Day range for a report. Missing or unparseable bounds default to the
    first day of the current month and today.
    """
    today = today or utcnow().date()
    start_day = parse_day(start) or today.replace(day=1)
    end_day = parse_day(end) or today
    if start_day > end_day:
        raise ReportError("from must be on or before to")
    return start_day, end_day


def profit_report(
    *,
    start: str | None,
    end: str | None,
    status: str = STATUS_COMPLETED,
    today: date | None = None,
) -> ProfitReport:
    """
    Orders in [start, end] (inclusive days) and the profit summary over the
    completed ones.

    status=completed filters by completed_at; any other value filters by
    created_at ("all" = every status).
    """
    status = (status or STATUS_COMPLETED).strip().lower()
    if status != STATUS_ALL and status not in ORDER_STATUSES:
        raise ReportError(f"status must be all or one of {', '.join(ORDER_STATUSES)}")

    start_day, end_day = resolve_range(start, end, today=today)
    start_dt, end_exclusive = day_range(start_day, end_day)

    query = db.session.query(Order)
    if status == STATUS_COMPLETED:
        query = query.filter(
            Order.status == STATUS_COMPLETED,
            Order.completed_at >= start_dt,
            Order.completed_at < end_exclusive,
        ).order_by(Order.completed_at.asc(), Order.id.asc())
    else:
        query = query.filter(
            Order.created_at >= start_dt,
            Order.created_at < end_exclusive,
        )
        if status != STATUS_ALL:
            query = query.filter(Order.status == status)
        query = query.order_by(Order.created_at.asc(), Order.id.asc())

    orders = query.all()
    completed = [o for o in orders if o.status == STATUS_COMPLETED]

    return ProfitReport(
        start=start_day,
        end=end_day,
        status=status,
        orders=orders,
        summary=calculate_profit_summary(completed),
        inventory=get_inventory_state(),
    )


def dashboard_summary() -> dict:
    """All-time profit over completed orders plus inventory and order counts."""
    completed = db.session.query(Order).filter(Order.status == STATUS_COMPLETED).all()
    counts = dict(
        db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    return {
        "profit": calculate_profit_summary(completed).to_dict(),
        "inventory": get_inventory_state().to_dict(),
        "order_counts": {s: int(counts.get(s, 0)) for s in ORDER_STATUSES},
    }
