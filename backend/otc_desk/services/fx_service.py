# Overview: USD/ILS representative rate from the Bank of Israel feed, cached in-process.

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

import httpx
from bs4 import BeautifulSoup, Tag
from flask import current_app

from ..errors import RateUnavailableError
from ..time_utils import utcnow, to_utc_z

logger = logging.getLogger(__name__)

SOURCE_BOI = "boi"


@dataclass(frozen=True)
class FxQuote:
    rate: Decimal
    source: str
    fetched_at: datetime

    def to_dict(self) -> dict:
        return {
            "rate": format(self.rate, "f"),
            "source": self.source,
            "fetched_at": to_utc_z(self.fetched_at),
        }


_cache_lock = threading.Lock()
_cache: dict[str, tuple[FxQuote, float]] = {}


def clear_cache() -> None:
    with _cache_lock:
        _cache.clear()


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _is_rate_node(tag: Tag) -> bool:
    return _local(tag.name) == "exchangerateresponsedto"


def parse_usd_rate(xml_text: str) -> Decimal:
    """
    Extract the USD CurrentExchangeRate from the BoI XML document.

    html.parser lowercases tag names, so element names match case-insensitively;
    namespace prefixes are dropped.
    """
    soup = BeautifulSoup(xml_text, "html.parser")

    for node in soup.find_all(_is_rate_node):
        fields = {
            _local(child.name): child.get_text(strip=True)
            for child in node.find_all(recursive=False)
        }
        if fields.get("key", "").upper() != "USD":
            continue
        raw = fields.get("currentexchangerate")
        try:
            rate = Decimal(raw)
        except (TypeError, InvalidOperation):
            raise RateUnavailableError("USD rate is not a number")
        if not rate.is_finite() or rate <= 0:
            raise RateUnavailableError("USD rate is not positive")
        return rate

    raise RateUnavailableError("USD rate not found in response")


def _fetch(url: str, timeout: float, transport=None) -> Decimal:
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise RateUnavailableError(f"rate source unavailable: {exc}")
    return parse_usd_rate(response.text)


def get_current_quote() -> FxQuote:
    """
    Current USD/ILS quote; served from cache for FX_CACHE_TTL_SECONDS.

    Raises RateUnavailableError when the feed cannot be read.
    """
    config = current_app.config
    url = config["FX_RATE_URL"]
    now = time.monotonic()

    with _cache_lock:
        cached = _cache.get(url)
        if cached is not None and cached[1] > now:
            return cached[0]

    rate = _fetch(url, config["FX_TIMEOUT_SECONDS"], config.get("HTTP_TRANSPORT"))
    quote = FxQuote(rate=rate, source=SOURCE_BOI, fetched_at=utcnow())

    with _cache_lock:
        _cache[url] = (quote, now + config["FX_CACHE_TTL_SECONDS"])
    logger.info("USD/ILS rate fetched: %s", rate)
    return quote


def get_current_rate() -> Decimal:
    return get_current_quote().rate


def try_get_current_rate() -> Decimal | None:
    """Rate or None; a missing rate only leaves profit_usd undefined."""
    try:
        return get_current_rate()
    except RateUnavailableError as exc:
        logger.warning("USD/ILS rate unavailable: %s", exc)
        return None
