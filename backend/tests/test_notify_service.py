import json

import httpx

from conftest import make_order
from otc_desk.models import Order
from otc_desk.services import notify_service, order_service


def _telegram(app, status=200, body=None):
    sent = []

    def handler(request):
        sent.append(request)
        return httpx.Response(status, json=body if body is not None else {"ok": True})

    app.config.update(
        TELEGRAM_BOT_TOKEN="123:abc",
        TELEGRAM_CHAT_ID="-100200",
        HTTP_TRANSPORT=httpx.MockTransport(handler),
    )
    return sent


def test_build_message_lists_order_fields():
    text = notify_service.build_message({
        "id": "abc-123",
        "full_name": "Dana Levi",
        "city": "Haifa",
        "phone": "050-1234567",
        "amount_usdt": "300",
        "payment_method": "BIT",
        "notes": None,
        "created_at": "2026-10-18T09:00:00Z",
    })

    assert text.startswith("New order")
    assert "Name: Dana Levi" in text
    assert "Amount: 300 USDT" in text
    assert "Notes: -" in text
    assert "Order ID: abc-123" in text


def test_disabled_without_credentials(db_session):
    order = make_order()
    assert notify_service.notify_new_order(order) is False


def test_sends_to_telegram(app, db_session):
    order = make_order()
    sent = _telegram(app)

    assert notify_service.notify_new_order(order) is True

    assert len(sent) == 1
    request = sent[0]
    assert request.url.path == "/bot123:abc/sendMessage"
    payload = json.loads(request.content)
    assert payload["chat_id"] == "-100200"
    assert order.id in payload["text"]


def test_order_creation_triggers_notification(app, db_session):
    sent = _telegram(app)

    make_order()

    assert len(sent) == 1


def test_rejected_notification_does_not_fail_order(app, db_session):
    _telegram(app, status=400, body={"ok": False, "description": "chat not found"})

    order = make_order()

    assert order.id
    assert notify_service.notify_new_order(order) is False


def test_network_failure_is_swallowed(app, db_session):
    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    app.config.update(
        TELEGRAM_BOT_TOKEN="123:abc",
        TELEGRAM_CHAT_ID="-100200",
        HTTP_TRANSPORT=httpx.MockTransport(handler),
    )

    order = make_order()
    assert notify_service.notify_new_order(order) is False


def test_broken_notifier_config_does_not_fail_order(app, db_session):
    _telegram(app)
    api_url = app.config.pop("TELEGRAM_API_URL")
    try:
        result = order_service.create_order(
            full_name="Dana Levi",
            phone="050-1234567",
            city="Haifa",
            amount_usdt="300",
            payment_method="BIT",
        )
    finally:
        app.config["TELEGRAM_API_URL"] = api_url

    assert result.ok
    assert db_session.get(Order, result.value.id) is not None
