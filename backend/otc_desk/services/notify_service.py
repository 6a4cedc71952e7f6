# Overview: New-order notifications to a Telegram chat; fire-and-forget.

from __future__ import annotations

import logging
import threading

import httpx
from flask import current_app

logger = logging.getLogger(__name__)


def build_message(order: dict) -> str:
    def _v(key: str) -> str:
        value = order.get(key)
        return "-" if value is None or value == "" else str(value)

    return "\n".join([
        "New order",
        "",
        f"Name: {_v('full_name')}",
        f"City: {_v('city')}",
        f"Phone: {_v('phone')}",
        f"Amount: {_v('amount_usdt')} USDT",
        f"Payment: {_v('payment_method')}",
        f"Notes: {_v('notes')}",
        "",
        f"Order ID: {_v('id')}",
        f"Created: {_v('created_at')}",
    ])


def _send(url: str, payload: dict, timeout: float, transport=None) -> bool:
    """POST to Telegram. Never raises: notification failure is logged only."""
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.post(url, json=payload)
        data = response.json()
    except (httpx.HTTPError, ValueError):
        logger.warning("new-order notification failed", exc_info=True)
        return False

    if not data.get("ok"):
        logger.warning("new-order notification rejected: %s", data.get("description", "Telegram API error"))
        return False
    return True


def notify_new_order(order) -> bool:
    """
    Dispatch the notification for a freshly committed order.

    Returns False when notifications are not configured. With NOTIFY_ASYNC
    the request runs on a daemon thread and never delays the caller.
    """
    config = current_app.config
    token = config.get("TELEGRAM_BOT_TOKEN")
    chat_id = config.get("TELEGRAM_CHAT_ID")
    if not token or not chat_id:
        logger.debug("notifications disabled (no Telegram credentials)")
        return False

    url = f"{config['TELEGRAM_API_URL'].rstrip('/')}/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": build_message(order.to_dict())}
    args = (url, payload, config["NOTIFY_TIMEOUT_SECONDS"], config.get("HTTP_TRANSPORT"))

    if config.get("NOTIFY_ASYNC", True):
        threading.Thread(target=_send, args=args, daemon=True, name="notify-new-order").start()
        return True
    return _send(*args)
