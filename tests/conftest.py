import httpx
import pytest
from fastapi.testclient import TestClient

from order_service.clients import NotificationPort
from order_service.db import create_db_engine, create_session_factory, init_db
from order_service.models import NewOrderRequest
from order_service.tables import Product

# marks "no items given"; an explicit None is sent as null
DEFAULT_CART = object()


class RecordingNotifier(NotificationPort):
    """Notification provider that records payloads in memory for test assertions."""

    def __init__(self):
        self.sent = []
        self.error = None
        self.configured = True
        self.accepts = True

    @property
    def is_configured(self):
        return self.configured

    def fail_with(self, error):
        self.error = error

    def send(self, payload):
        if self.error is not None:
            raise self.error
        self.sent.append(payload)
        return self.accepts


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def products(session_factory):
    """Catalogue with 5 mild, 10 hot and 0 sold-out sauces."""
    with session_factory() as session, session.begin():
        session.add_all([
            Product(sku="SAUCE-MILD", name="Mild Asian Fire", stock_qty=5),
            Product(sku="SAUCE-HOT", name="Hot Asian Fire", stock_qty=10),
            Product(sku="SAUCE-SOLDOUT", name="Ghost Pepper Edition", stock_qty=0),
        ])


@pytest.fixture
def stock_of(session_factory):
    def read(sku):
        with session_factory() as session:
            return session.query(Product).filter_by(sku=sku).one().stock_qty
    return read


@pytest.fixture
def order_payload():
    """Factory for cart submissions as the shop frontend sends them."""
    def make(items=DEFAULT_CART, **overrides):
        payload = {
            "customer": {
                "firstName": "Erika",
                "lastName": "Mustermann",
                "email": "Erika.Mustermann@Example.com",
                "phone": "+49 30 1234567",
                "street": "Heidestraße",
                "house": "17",
                "zip": "51147",
                "city": "Köln",
            },
            "items": items if items is not DEFAULT_CART else [
                {"sku": "SAUCE-MILD", "name": "Mild Asian Fire", "qty": 2, "price": 6.5},
            ],
            "subtotal": 13.0,
            "shipping": 4.9,
            "total": 17.9,
            "paymentMethod": "PAYPAL",
        }
        payload.update(overrides)
        return payload
    return make


@pytest.fixture
def new_order(order_payload):
    def make(items=DEFAULT_CART, **overrides):
        return NewOrderRequest.model_validate(order_payload(items, **overrides))
    return make


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def provider_outage():
    return httpx.ConnectError("Connection refused")


@pytest.fixture
def api_client(session_factory, products, notifier):
    from order_service.db import get_session_factory
    from order_service.main import app, get_mailer

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_mailer] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
