# Overview: Service-layer operations for desk settings (current sell quote).

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import OperationResult
from ..extensions import db
from ..models import AppSettings
from ..models.settings import APP_SETTINGS_ID
from ..validation import require_positive_decimal
from .concurrency import run_operation

logger = logging.getLogger(__name__)


def get_settings() -> AppSettings:
    """Settings row, or an unsaved empty one when staff never saved a quote."""
    settings = db.session.query(AppSettings).filter_by(id=APP_SETTINGS_ID).first()
    if settings is None:
        return AppSettings(id=APP_SETTINGS_ID, sell_price_ils_per_usdt=None)
    return settings


def get_current_sell_price() -> Decimal | None:
    return get_settings().sell_price_ils_per_usdt


def set_sell_price(sell_price_ils_per_usdt) -> OperationResult:
    """Update the quoted sell price (must be > 0). Success value: AppSettings."""
    def _op():
        price = require_positive_decimal(sell_price_ils_per_usdt, "sell_price_ils_per_usdt")

        settings = db.session.query(AppSettings).filter_by(id=APP_SETTINGS_ID).first()
        if settings is None:
            settings = AppSettings(id=APP_SETTINGS_ID)
            db.session.add(settings)
        settings.sell_price_ils_per_usdt = price
        db.session.commit()

        logger.info("sell price updated to %s", price)
        return settings

    return run_operation(_op, name="set_sell_price")
