from __future__ import annotations

from ..db_types import ScaledDecimal, decimal_str
from ..extensions import db
from ..time_utils import to_utc_z


APP_SETTINGS_ID = 1


class AppSettings(db.Model):
    """
    Staff-editable desk settings (single row, id=1).

    sell_price_ils_per_usdt is the current quote; new orders snapshot it and
    completion falls back to it when the order carries no price.
    """
    __tablename__ = "app_settings"

    id = db.Column(db.Integer, primary_key=True)
    sell_price_ils_per_usdt = db.Column(ScaledDecimal(), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "sell_price_ils_per_usdt": decimal_str(self.sell_price_ils_per_usdt),
            "updated_at": to_utc_z(self.updated_at),
        }
