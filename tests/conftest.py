import json

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.accounts.sessions import admin_sessions
from modules.orders.dtos import CartItemDTO, CustomerSnapshotDTO, PlaceOrderDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.dtos import CheckoutSessionDTO, SessionStatusDTO
from modules.payments.exceptions import GatewayError
from modules.payments.gateways import IPaymentGateway
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

STAFF_PASSWORD = "Kardemumma-Bulle-77"


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Throttle counters and admin sessions live outside the database."""
    cache.clear()
    admin_sessions.clear()
    yield
    admin_sessions.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.fixture()
def staff_password():
    return STAFF_PASSWORD


@pytest.fixture()
def staff_user():
    return get_user_model().objects.create_user(
        username="butik-admin",
        password=STAFF_PASSWORD,
        is_staff=True,
    )


@pytest.fixture()
def staff_token(staff_user):
    return admin_sessions.issue(staff_user.username)


@pytest.fixture()
def staff_client(staff_token):
    """APIClient carrying a live admin session token."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {staff_token}")
    return client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    def _make(**overrides):
        data = {
            "name": "Earl Grey Imperial",
            "category": "te",
            "price": 149,
            "weight": "100g",
            "origin": "Sri Lanka",
            "description": "Svart te med bergamott.",
        }
        data.update(overrides)
        return Product.objects.create(**data)

    return _make


@pytest.fixture()
def earl_grey(make_product):
    return make_product()


@pytest.fixture()
def pralines(make_product):
    return make_product(
        name="Chokladpraliner Assorterade",
        category="choklad",
        price=249,
        weight="200g",
        origin="Sverige",
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_data():
    return {
        "name": "Astrid Lindqvist",
        "email": "astrid@example.se",
        "phone": "070-123 45 67",
        "address": "Storgatan 12",
        "postal_code": "114 55",
        "city": "Stockholm",
    }


@pytest.fixture()
def order_payload(customer_data, earl_grey, pralines):
    """Cart of 2 x 149 + 1 x 249 = 547 kr, above the free-shipping threshold."""
    return {
        "customer": customer_data,
        "items": [
            {"product_id": str(earl_grey.id), "quantity": 2},
            {"product_id": str(pralines.id), "quantity": 1},
        ],
        "notes": "Lämna vid dörren",
    }


@pytest.fixture()
def place_order_dto(customer_data, earl_grey, pralines):
    return PlaceOrderDTO(
        customer=CustomerSnapshotDTO(**customer_data),
        items=[
            CartItemDTO(product_id=earl_grey.id, quantity=2),
            CartItemDTO(product_id=pralines.id, quantity=1),
        ],
        notes="Lämna vid dörren",
    )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class FakePaymentGateway(IPaymentGateway):
    """Records sessions in memory; ``complete()`` plays the customer paying."""

    def __init__(self) -> None:
        self.configured = True
        self.error = None
        self.created = []
        self.sessions = {}

    @property
    def is_configured(self) -> bool:
        return self.configured

    def create_session(self, order_id, draft, customer_email):
        if self.error is not None:
            raise self.error
        session_id = f"cs_test_{len(self.created) + 1:04d}"
        self.created.append(
            {
                "order_id": order_id,
                "draft": draft,
                "customer_email": customer_email,
                "session_id": session_id,
            }
        )
        self.sessions[session_id] = SessionStatusDTO(
            session_id=session_id,
            payment_status="unpaid",
            customer_email=customer_email,
            amount_total_minor=draft.total * 100,
        )
        return CheckoutSessionDTO(
            session_id=session_id,
            redirect_url=f"https://checkout.stripe.test/pay/{session_id}",
        )

    def retrieve_session(self, session_id):
        if self.error is not None:
            raise self.error
        try:
            return self.sessions[session_id]
        except KeyError as exc:
            raise GatewayError(f"No such checkout.session: '{session_id}'") from exc

    def parse_webhook(self, payload, signature):
        return json.loads(payload)

    def complete(self, session_id, payment_intent="pi_test_0001"):
        self.sessions[session_id] = self.sessions[session_id].model_copy(
            update={"payment_status": "paid", "payment_intent": payment_intent}
        )


@pytest.fixture()
def fake_gateway():
    return FakePaymentGateway()


@pytest.fixture()
def use_fake_gateway(monkeypatch, fake_gateway):
    """Route the payment views to ``fake_gateway``."""
    monkeypatch.setattr(
        "modules.payments.views.get_payment_gateway", lambda: fake_gateway
    )
    return fake_gateway


@pytest.fixture()
def order_service(fake_gateway):
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        payment_gateway=fake_gateway,
    )


@pytest.fixture()
def webhook_event():
    """Build a ``checkout.session.*`` webhook body."""

    def _build(session_id, event_type="checkout.session.completed", **session):
        obj = {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": "paid",
            "payment_intent": "pi_test_0001",
        }
        obj.update(session)
        return json.dumps(
            {"id": "evt_test_0001", "type": event_type, "data": {"object": obj}}
        ).encode()

    return _build
