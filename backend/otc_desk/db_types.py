"""
Fixed-point column type and Decimal helpers.

Every quantity (USDT), price (ILS/USDT), rate (ILS/USD) and amount (ILS, USD)
is a Decimal with SCALE fractional digits. On disk it is a scaled integer, so
values round-trip exactly on SQLite as well as PostgreSQL and SQL SUM() stays
exact. No floats anywhere in ledger math.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator


SCALE = 8
ZERO = Decimal("0")
# Largest magnitude a ScaledDecimal column holds: signed 64-bit integer / 10**SCALE
MAX_STORED_VALUE = Decimal(2 ** 63 - 1).scaleb(-SCALE)


def to_decimal(value) -> Decimal:
    """
    Convert an int / str / float / Decimal to Decimal.

    Floats go through str() so 4.1 becomes Decimal("4.1"), not its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    raise TypeError(f"cannot convert {type(value).__name__} to Decimal")


def quantize(value, places: int = SCALE) -> Decimal:
    """The only rounding used for stored values: half-up at `places` digits."""
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def fits_column(value) -> bool:
    """True when `value` survives the BIGINT encoding of ScaledDecimal."""
    return value is None or abs(to_decimal(value)) <= MAX_STORED_VALUE


def decimal_str(value: Decimal | None) -> str | None:
    """JSON-safe rendering without exponent notation."""
    if value is None:
        return None
    return format(value, "f")


class ScaledDecimal(TypeDecorator):
    """Decimal stored as BIGINT of value * 10**scale."""

    impl = BigInteger
    cache_ok = True

    def __init__(self, scale: int = SCALE):
        super().__init__()
        self.scale = scale

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(quantize(value, self.scale).scaleb(self.scale))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-self.scale)
