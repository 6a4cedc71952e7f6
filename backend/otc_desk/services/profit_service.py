# Overview: Profit math shared by order completion, the dashboard summary and the export.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..db_types import ZERO, quantize, decimal_str


@dataclass(frozen=True)
class OrderProfit:
    profit_ils: Optional[Decimal]
    profit_usd: Optional[Decimal]


@dataclass(frozen=True)
class ProfitSummary:
    order_count: int
    total_sold_usdt: Decimal
    total_profit_ils: Decimal
    total_profit_usd: Decimal
    avg_sell_price: Optional[Decimal]

    def to_dict(self) -> dict:
        return {
            "order_count": self.order_count,
            "total_sold_usdt": decimal_str(self.total_sold_usdt),
            "total_profit_ils": decimal_str(self.total_profit_ils),
            "total_profit_usd": decimal_str(self.total_profit_usd),
            "avg_sell_price": decimal_str(self.avg_sell_price),
        }


def compute_profit(
    *,
    amount_usdt: Optional[Decimal],
    sell_price_ils_per_usdt: Optional[Decimal],
    buy_avg_cost_ils_per_usdt: Optional[Decimal],
    usd_ils_rate: Optional[Decimal],
) -> OrderProfit:
    """
    profit_ils = amount * (sell - avg_cost); profit_usd = profit_ils / rate (rate > 0).

    Completion and the legacy-row fallback both call this, so stored and
    recomputed figures are identical to the last digit.
    """
    if amount_usdt is None or sell_price_ils_per_usdt is None or buy_avg_cost_ils_per_usdt is None:
        return OrderProfit(profit_ils=None, profit_usd=None)

    profit_ils = quantize(amount_usdt * (sell_price_ils_per_usdt - buy_avg_cost_ils_per_usdt))
    profit_usd = None
    if usd_ils_rate is not None and usd_ils_rate > 0:
        profit_usd = quantize(profit_ils / usd_ils_rate)
    return OrderProfit(profit_ils=profit_ils, profit_usd=profit_usd)


def resolve_profit(order) -> OrderProfit:
    """
    Stored profit when present, otherwise recomputed from the captured inputs.

    Missing pieces stay None; summaries treat them as zero.
    """
    profit_ils = order.profit_ils
    profit_usd = order.profit_usd
    if profit_ils is not None and profit_usd is not None:
        return OrderProfit(profit_ils=profit_ils, profit_usd=profit_usd)

    computed = compute_profit(
        amount_usdt=order.amount_usdt,
        sell_price_ils_per_usdt=order.sell_price_ils_per_usdt,
        buy_avg_cost_ils_per_usdt=order.buy_avg_cost_ils_per_usdt,
        usd_ils_rate=order.usd_ils_rate,
    )
    if profit_ils is None:
        profit_ils = computed.profit_ils
    if profit_usd is None and profit_ils is not None:
        rate = order.usd_ils_rate
        if rate is not None and rate > 0:
            profit_usd = quantize(profit_ils / rate)
    return OrderProfit(profit_ils=profit_ils, profit_usd=profit_usd)


def calculate_profit_summary(completed_orders: Iterable) -> ProfitSummary:
    """
    Aggregate over completed orders.

    avg_sell_price is amount-weighted: sum(sell * amount) / sum(amount),
    None when nothing was sold.
    """
    order_count = 0
    total_sold = ZERO
    total_ils = ZERO
    total_usd = ZERO
    weighted_sell = ZERO

    for order in completed_orders:
        order_count += 1
        amount = order.amount_usdt or ZERO
        profit = resolve_profit(order)
        total_sold += amount
        total_ils += profit.profit_ils or ZERO
        total_usd += profit.profit_usd or ZERO
        weighted_sell += (order.sell_price_ils_per_usdt or ZERO) * amount

    avg_sell_price = None
    if order_count > 0 and total_sold > 0:
        avg_sell_price = quantize(weighted_sell / total_sold)

    return ProfitSummary(
        order_count=order_count,
        total_sold_usdt=quantize(total_sold),
        total_profit_ils=quantize(total_ils),
        total_profit_usd=quantize(total_usd),
        avg_sell_price=avg_sell_price,
    )
