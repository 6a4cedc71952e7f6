# Overview: Renders a profit report as an .xlsx workbook (summary + orders sheets, RTL Hebrew headers).

from __future__ import annotations

from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from ..db_types import ZERO
from ..models.orders import STATUS_COMPLETED
from .profit_service import resolve_profit
from .reporting_service import ProfitReport


XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

NUM_FMT_2 = "0.00"
NUM_FMT_4 = "0.0000"

SUMMARY_SHEET = "סיכום"
ORDERS_SHEET = "הזמנות"

SUMMARY_HEADERS = [
    "טווח תאריכים",
    "מספר הזמנות",
    'סה"כ USDT שנמכר',
    "רווח כולל ₪",
    "רווח כולל $",
    "מחיר מכירה ממוצע (₪/USDT)",
    "עלות ממוצעת (₪/USDT)",
]

# (header, width, number format)
ORDER_COLUMNS = [
    ("תאריך", 18, None),
    ("Order ID", 14, None),
    ("שם", 18, None),
    ("עיר", 14, None),
    ("טלפון", 14, None),
    ("אמצעי תשלום", 14, None),
    ("USDT", 12, NUM_FMT_2),
    ("מחיר מכירה (₪/USDT)", 18, NUM_FMT_4),
    ("עלות ממוצעת בעת מכירה (₪/USDT)", 22, NUM_FMT_4),
    ("רווח ₪", 12, NUM_FMT_2),
    ("רווח $", 12, NUM_FMT_2),
    ("סטטוס", 10, None),
]

TOTAL_LABEL = 'סה"כ'

_HEADER_FONT = Font(bold=True)
_RTL = Alignment(horizontal="right")


def report_filename(report: ProfitReport) -> str:
    return f"otc_desk_report_{report.start.isoformat()}_to_{report.end.isoformat()}.xlsx"


def short_id(order_id: str) -> str:
    return order_id[-6:] if len(order_id) >= 6 else order_id


def _num(value: Decimal | None):
    return float(value) if value is not None else ""


def _format_dt(dt) -> str:
    if dt is None:
        return ""
    return dt.replace(microsecond=0).isoformat(sep=" ")


def _write_summary(ws, report: ProfitReport) -> None:
    ws.sheet_view.rightToLeft = True
    ws.freeze_panes = "A2"

    summary = report.summary
    ws.append(SUMMARY_HEADERS)
    ws.append([
        f"{report.start.isoformat()} - {report.end.isoformat()}",
        summary.order_count,
        _num(summary.total_sold_usdt),
        _num(summary.total_profit_ils),
        _num(summary.total_profit_usd),
        _num(summary.avg_sell_price),
        _num(report.inventory.avg_cost_ils_per_usdt),
    ])

    for col in range(1, len(SUMMARY_HEADERS) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18 if col == 1 else 16
        header = ws.cell(row=1, column=col)
        header.font = _HEADER_FONT
        header.alignment = _RTL
        value = ws.cell(row=2, column=col)
        value.alignment = _RTL
        if col >= 2:
            value.number_format = NUM_FMT_4 if col >= 6 else NUM_FMT_2


def _write_orders(ws, report: ProfitReport) -> None:
    ws.sheet_view.rightToLeft = True
    ws.freeze_panes = "A2"

    ws.append([header for header, _, _ in ORDER_COLUMNS])

    total_usdt = ZERO
    total_ils = ZERO
    total_usd = ZERO
    for order in report.orders:
        profit = resolve_profit(order)
        is_completed = order.status == STATUS_COMPLETED
        when = order.completed_at if is_completed and order.completed_at else order.created_at
        ws.append([
            _format_dt(when),
            short_id(order.id),
            order.full_name or "",
            order.city or "",
            order.phone or "",
            order.payment_method or "",
            _num(order.amount_usdt),
            _num(order.sell_price_ils_per_usdt),
            _num(order.buy_avg_cost_ils_per_usdt),
            _num(profit.profit_ils or ZERO),
            _num(profit.profit_usd or ZERO),
            order.status or "",
        ])
        if is_completed:
            total_usdt += order.amount_usdt or ZERO
            total_ils += profit.profit_ils or ZERO
            total_usd += profit.profit_usd or ZERO

    ws.append([
        TOTAL_LABEL, "", "", "", "", "",
        _num(total_usdt), "", "", _num(total_ils), _num(total_usd), "",
    ])

    for col, (_, width, fmt) in enumerate(ORDER_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width
        for row in range(1, ws.max_row + 1):
            cell = ws.cell(row=row, column=col)
            cell.alignment = _RTL
            if row > 1 and fmt:
                cell.number_format = fmt

    for col in range(1, len(ORDER_COLUMNS) + 1):
        ws.cell(row=1, column=col).font = _HEADER_FONT
        ws.cell(row=ws.max_row, column=col).font = _HEADER_FONT

    last_col = get_column_letter(len(ORDER_COLUMNS))
    ws.auto_filter.ref = f"A1:{last_col}{max(2, ws.max_row)}"


def build_profit_workbook(report: ProfitReport) -> bytes:
    """
    Serialize a ProfitReport to .xlsx bytes.

    Sheet 1 holds one summary row (completed orders only); sheet 2 one row per
    order in the report plus a totals row over the completed ones. Missing
    stored profit is recomputed from the captured inputs.
    """
    wb = Workbook()
    summary_ws = wb.active
    summary_ws.title = SUMMARY_SHEET
    _write_summary(summary_ws, report)
    _write_orders(wb.create_sheet(ORDERS_SHEET), report)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
