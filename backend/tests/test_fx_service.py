from decimal import Decimal

import httpx
import pytest

from conftest import BOI_XML
from otc_desk.errors import RateUnavailableError
from otc_desk.services import fx_service


def test_parse_usd_rate_from_boi_document():
    assert fx_service.parse_usd_rate(BOI_XML) == Decimal("3.7")


def test_parse_without_namespace():
    xml = (
        "<Root><ExchangeRateResponseDTO><Key>usd</Key>"
        "<CurrentExchangeRate>3.651</CurrentExchangeRate></ExchangeRateResponseDTO></Root>"
    )
    assert fx_service.parse_usd_rate(xml) == Decimal("3.651")


@pytest.mark.parametrize("xml", [
    "not xml at all",
    "<Root><ExchangeRateResponseDTO><Key>EUR</Key><CurrentExchangeRate>4</CurrentExchangeRate></ExchangeRateResponseDTO></Root>",
    "<Root><ExchangeRateResponseDTO><Key>USD</Key><CurrentExchangeRate>0</CurrentExchangeRate></ExchangeRateResponseDTO></Root>",
    "<Root><ExchangeRateResponseDTO><Key>USD</Key><CurrentExchangeRate>n/a</CurrentExchangeRate></ExchangeRateResponseDTO></Root>",
])
def test_parse_rejects_unusable_documents(xml):
    with pytest.raises(RateUnavailableError):
        fx_service.parse_usd_rate(xml)


def test_quote_is_cached(app, boi_transport):
    first = fx_service.get_current_quote()
    second = fx_service.get_current_quote()

    assert first.rate == Decimal("3.7")
    assert first.source == fx_service.SOURCE_BOI
    assert second is first
    assert len(boi_transport) == 1


def test_cache_expires(app, boi_transport):
    app.config["FX_CACHE_TTL_SECONDS"] = 0
    try:
        fx_service.get_current_quote()
        fx_service.get_current_quote()
    finally:
        app.config["FX_CACHE_TTL_SECONDS"] = 3600

    assert len(boi_transport) == 2


def test_http_failure_raises_rate_unavailable(app):
    with pytest.raises(RateUnavailableError):
        fx_service.get_current_rate()


def test_try_get_current_rate_swallows_failure(app):
    assert fx_service.try_get_current_rate() is None


def test_network_error_is_rate_unavailable(app):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    app.config["HTTP_TRANSPORT"] = httpx.MockTransport(handler)

    assert fx_service.try_get_current_rate() is None


def test_parse_prefixed_elements():
    xml = (
        '<b:Root xmlns:b="urn:boi"><b:ExchangeRateResponseDTO><b:Key>USD</b:Key>'
        "<b:CurrentExchangeRate>3.702</b:CurrentExchangeRate></b:ExchangeRateResponseDTO></b:Root>"
    )
    assert fx_service.parse_usd_rate(xml) == Decimal("3.702")
