from __future__ import annotations
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeMeta

from .db_types import ScaledDecimal, fits_column, to_decimal, MAX_STORED_VALUE, decimal_str
from .errors import ValidationError


# Request-level upper bounds against fat-finger input; storage range is MAX_STORED_VALUE
MAX_AMOUNT_USDT = Decimal("100000000")  # 100M USDT
MAX_PRICE_ILS_PER_USDT = Decimal("1000")
MAX_USD_ILS_RATE = Decimal("1000")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: payload key -> model column key, for API names that differ from columns
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        dec = to_decimal(value)
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError(f"{key} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if not fits_column(dec):
        raise ValidationError(
            f"{key} is out of range",
            details={"field": key, "max": decimal_str(MAX_STORED_VALUE)},
        )
    return dec


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Fixed-point amounts and prices: accept JSON numbers or numeric strings
    if isinstance(coltype, ScaledDecimal):
        return _coerce_decimal(key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by payload names, with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if policy.aliases.get(k, k) not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[policy.aliases.get(k, k)]

        if raw is None:
            if not col.nullable and k in policy.required_on_create:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank strings: required -> error, optional -> null
        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if k in policy.required_on_create:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _require_positive(patch: dict, key: str, maximum: Decimal) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value <= 0:
        raise ValidationError(f"{key} must be > 0")
    if value > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}")


def enforce_rules_order_create(patch: dict) -> None:
    from .models.orders import PAYMENT_METHODS

    _require_positive(patch, "amount_usdt", MAX_AMOUNT_USDT)
    method = patch.get("payment_method")
    if method is not None and method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")


def enforce_rules_order_complete(patch: dict) -> None:
    _require_positive(patch, "sell_price_ils_per_usdt", MAX_PRICE_ILS_PER_USDT)
    _require_positive(patch, "usd_ils_rate", MAX_USD_ILS_RATE)


def enforce_rules_inventory_batch(patch: dict) -> None:
    # PURCHASE requires amount > 0 and price > 0
    _require_positive(patch, "amount_usdt", MAX_AMOUNT_USDT)
    _require_positive(patch, "buy_price_ils_per_usdt", MAX_PRICE_ILS_PER_USDT)


def enforce_rules_inventory_adjust(patch: dict) -> None:
    # ADJUST requires amount != 0; write-offs need a reason
    amount = patch.get("amount_usdt")
    if amount is None or amount == 0:
        raise ValidationError("amount_usdt must be non-zero for ADJUST")
    if abs(amount) > MAX_AMOUNT_USDT:
        raise ValidationError(f"amount_usdt cannot exceed {MAX_AMOUNT_USDT}")
    if amount < 0 and not patch.get("note"):
        raise ValidationError("note is required for a negative adjustment")
    _require_positive(patch, "unit_cost_ils_per_usdt", MAX_PRICE_ILS_PER_USDT)


def enforce_rules_settings(patch: dict) -> None:
    if patch.get("sell_price_ils_per_usdt") is None:
        raise ValidationError("sell_price_ils_per_usdt is required")
    _require_positive(patch, "sell_price_ils_per_usdt", MAX_PRICE_ILS_PER_USDT)


def require_decimal(value: Any, key: str) -> Decimal:
    """Service-level coercion for callers that bypass validate_payload (CLI, internal)."""
    from .db_types import quantize

    if value is None:
        raise ValidationError(f"{key} is required")
    return quantize(_coerce_decimal(key, value))


def require_positive_decimal(value: Any, key: str) -> Decimal:
    dec = require_decimal(value, key)
    if dec <= 0:
        raise ValidationError(f"{key} must be > 0")
    return dec


def clean_text(value: Any) -> str | None:
    """Trim; blank -> None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
