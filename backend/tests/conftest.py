"""
Pytest fixtures for OTC desk backend tests.

Provides the app on in-memory SQLite, a per-test clean database, a test
client, admin headers, and httpx mock transports for the FX and Telegram
adapters (no test ever reaches the network).
"""

import httpx
import pytest
from otc_desk import create_app
from otc_desk.extensions import db
from otc_desk.services import fx_service, inventory_service, order_service


ADMIN_SECRET = "test-admin-secret"

BOI_XML = """<?xml version="1.0" encoding="utf-8"?>
<ExchangeRatesResponseCollectioDTO xmlns:i="http://www.w3.org/2001/XMLSchema-instance" xmlns="http://schemas.datacontract.org/2004/07/BOI.Core.Models.HotData">
  <ExchangeRates>
    <ExchangeRateResponseDTO>
      <Key>EUR</Key>
      <CurrentExchangeRate>4.012</CurrentExchangeRate>
      <CurrentChange>0.1</CurrentChange>
      <Unit>1</Unit>
    </ExchangeRateResponseDTO>
    <ExchangeRateResponseDTO>
      <Key>USD</Key>
      <CurrentExchangeRate>3.7</CurrentExchangeRate>
      <CurrentChange>-0.2</CurrentChange>
      <Unit>1</Unit>
    </ExchangeRateResponseDTO>
  </ExchangeRates>
</ExchangeRatesResponseCollectioDTO>
"""


def _unavailable(request):
    return httpx.Response(503, text="unavailable")


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'ADMIN_SECRET': ADMIN_SECRET,
    'TELEGRAM_BOT_TOKEN': None,
    'TELEGRAM_CHAT_ID': None,
    'NOTIFY_ASYNC': False,
    'FX_RATE_URL': 'https://boi.test/PublicApi/GetExchangeRates?asXml=true',
    'HTTP_TRANSPORT': httpx.MockTransport(_unavailable),
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def reset_adapters(app):
    """Every test starts with an empty FX cache and an unreachable network."""
    fx_service.clear_cache()
    saved = {k: app.config[k] for k in ('HTTP_TRANSPORT', 'TELEGRAM_BOT_TOKEN', 'TELEGRAM_CHAT_ID')}
    yield
    app.config.update(saved)
    fx_service.clear_cache()


@pytest.fixture
def boi_transport(app):
    """Serve the BoI XML from a mock transport; returns the list of seen requests."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, text=BOI_XML)

    app.config['HTTP_TRANSPORT'] = httpx.MockTransport(handler)
    return seen


@pytest.fixture
def admin_headers():
    return {'X-Admin-Secret': ADMIN_SECRET}


@pytest.fixture
def stocked_inventory(db_session):
    """1000 USDT bought at 4.0 ILS."""
    inventory_service.add_batch("1000", "4.0", note="seed").unwrap()
    return inventory_service.get_inventory_state()


def make_order(amount="300", **overrides):
    """Create a `new` order through the service and return it."""
    fields = {
        'full_name': 'Dana Levi',
        'phone': '050-1234567',
        'city': 'Haifa',
        'amount_usdt': amount,
        'payment_method': 'BIT',
    }
    fields.update(overrides)
    return order_service.create_order(**fields).unwrap()
