from flask import Blueprint, current_app

from ..errors import RateUnavailableError
from ..services import fx_service


fx_bp = Blueprint("fx", __name__, url_prefix="/api")


@fx_bp.get("/usd-ils")
def usd_ils_rate():
    """Current USD/ILS representative rate (cached upstream for an hour)."""
    try:
        quote = fx_service.get_current_quote()
    except RateUnavailableError as exc:
        current_app.logger.warning("USD/ILS rate request failed: %s", exc)
        return exc.to_response()

    ttl = current_app.config["FX_CACHE_TTL_SECONDS"]
    return quote.to_dict(), 200, {"Cache-Control": f"public, max-age={ttl}"}
