"""Unit tests for OrderService.

Covers:
- Manual orders: pricing, snapshots, history and the ``OrderPlaced`` event.
- Card checkout: the order exists only once the provider session does.
- Payment confirmation: applied at most once per session, whichever of the
  webhook or the redirect poll arrives first.
- Admin overrides: any status, ``paid`` included; ``paid_at`` is never touched.
"""

from __future__ import annotations

import json
import logging
from uuid import uuid4

import pytest
from django.utils import timezone

from modules.core.models import EventStatus, OutboxEvent
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.dtos import CartItemDTO, PlaceOrderDTO
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.exceptions import (
    GatewayError,
    PaymentsNotConfigured,
    SignatureVerificationFailed,
)
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


def _events(event_type):
    return OutboxEvent.objects.filter(event_type=event_type)


def _logged(caplog, event):
    return any(event in record.getMessage() for record in caplog.records)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def checkout(order_service, place_order_dto):
    """An order awaiting card payment."""
    return order_service.start_checkout(place_order_dto)


@pytest.fixture()
def manual_order(order_service, place_order_dto):
    return order_service.place_manual_order(place_order_dto)


# ---------------------------------------------------------------------------
# Manual orders
# ---------------------------------------------------------------------------


class TestPlaceManualOrder:
    def test_persists_pending_manual_order(self, manual_order):
        order = Order.objects.get(id=manual_order.id)

        assert order.status == OrderStatus.PENDING
        assert order.payment_method == PaymentMethod.MANUAL
        assert order.subtotal == 547
        assert order.shipping == 0
        assert order.total == 547
        assert order.stripe_session_id is None
        assert order.paid_at is None
        assert order.notes == "Lämna vid dörren"

    def test_snapshots_customer(self, manual_order, customer_data):
        assert manual_order.customer_name == customer_data["name"]
        assert manual_order.customer_email == customer_data["email"]
        assert manual_order.customer_phone == customer_data["phone"]
        assert manual_order.address == customer_data["address"]
        assert manual_order.postal_code == customer_data["postal_code"]
        assert manual_order.city == customer_data["city"]

    def test_snapshots_items(self, manual_order, earl_grey, pralines):
        assert manual_order.items == [
            {
                "product_id": str(earl_grey.id),
                "name": "Earl Grey Imperial",
                "price": 149,
                "quantity": 2,
                "subtotal": 298,
            },
            {
                "product_id": str(pralines.id),
                "name": "Chokladpraliner Assorterade",
                "price": 249,
                "quantity": 1,
                "subtotal": 249,
            },
        ]

    def test_records_initial_history(self, manual_order):
        (entry,) = OrderStatusHistory.objects.filter(order=manual_order)
        assert entry.old_status is None
        assert entry.new_status == OrderStatus.PENDING
        assert entry.notes == "Order placed"

    def test_writes_order_placed_event(self, manual_order):
        (row,) = _events("OrderPlaced")
        assert row.aggregate_id == str(manual_order.id)
        assert row.payload["payment_method"] == PaymentMethod.MANUAL
        assert row.payload["total"] == 547
        assert row.status == EventStatus.PENDING

    def test_events_are_dispatched_after_commit(
        self, order_service, place_order_dto, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            order_service.place_manual_order(place_order_dto)

        assert len(callbacks) == 1
        (row,) = _events("OrderPlaced")
        assert row.status == EventStatus.PUBLISHED

    def test_unknown_product_persists_nothing(self, order_service, place_order_dto):
        dto = PlaceOrderDTO(
            customer=place_order_dto.customer,
            items=[*place_order_dto.items, CartItemDTO(product_id=uuid4(), quantity=1)],
        )

        with pytest.raises(ProductNotFound):
            order_service.place_manual_order(dto)

        assert Order.objects.count() == 0
        assert OutboxEvent.objects.count() == 0

    def test_out_of_stock_persists_nothing(self, order_service, place_order_dto, pralines):
        pralines.in_stock = False
        pralines.save()

        with pytest.raises(ProductUnavailable):
            order_service.place_manual_order(place_order_dto)

        assert Order.objects.count() == 0

    def test_later_price_change_does_not_touch_order(
        self, order_service, manual_order, earl_grey
    ):
        earl_grey.price = 999
        earl_grey.name = "Earl Grey Royal"
        earl_grey.save()

        order = order_service.get_order(str(manual_order.id))
        assert order.items[0]["price"] == 149
        assert order.items[0]["name"] == "Earl Grey Imperial"
        assert order.total == 547

    def test_works_without_a_payment_gateway(self, place_order_dto):
        service = OrderService(OrderDjangoRepository(), ProductDjangoRepository())

        order = service.place_manual_order(place_order_dto)

        assert order.status == OrderStatus.PENDING


# ---------------------------------------------------------------------------
# Card checkout
# ---------------------------------------------------------------------------


class TestStartCheckout:
    def test_persists_pending_payment_order_bound_to_session(self, checkout, fake_gateway):
        order = Order.objects.get(id=checkout.order.id)

        assert order.status == OrderStatus.PENDING_PAYMENT
        assert order.payment_method == PaymentMethod.STRIPE
        assert order.stripe_session_id == checkout.session.session_id
        assert order.paid_at is None

    def test_session_is_opened_for_the_persisted_order(self, checkout, fake_gateway):
        (call,) = fake_gateway.created
        assert call["order_id"] == checkout.order.id
        assert call["draft"].total == 547
        assert call["customer_email"] == "astrid@example.se"

    def test_returns_redirect_url(self, checkout):
        assert checkout.session.redirect_url.startswith("https://checkout.stripe.test/")

    def test_gateway_error_persists_nothing(
        self, order_service, place_order_dto, fake_gateway
    ):
        fake_gateway.error = GatewayError("Your card was declined.")

        with pytest.raises(GatewayError):
            order_service.start_checkout(place_order_dto)

        assert Order.objects.count() == 0
        assert OrderStatusHistory.objects.count() == 0
        assert OutboxEvent.objects.count() == 0

    def test_unconfigured_gateway_is_not_called(
        self, order_service, place_order_dto, fake_gateway
    ):
        fake_gateway.configured = False

        with pytest.raises(PaymentsNotConfigured):
            order_service.start_checkout(place_order_dto)

        assert fake_gateway.created == []
        assert Order.objects.count() == 0

    def test_missing_gateway(self, place_order_dto):
        service = OrderService(OrderDjangoRepository(), ProductDjangoRepository())

        with pytest.raises(PaymentsNotConfigured):
            service.start_checkout(place_order_dto)

    def test_cart_is_priced_before_the_provider_is_called(
        self, order_service, place_order_dto, fake_gateway, earl_grey
    ):
        earl_grey.delete()

        with pytest.raises(ProductNotFound):
            order_service.start_checkout(place_order_dto)

        assert fake_gateway.created == []


# ---------------------------------------------------------------------------
# Payment confirmation
# ---------------------------------------------------------------------------


class TestConfirmPayment:
    def test_first_confirmation_marks_order_paid(self, order_service, checkout):
        result = order_service.confirm_payment(checkout.session.session_id, "pi_123")

        assert result.applied is True
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PAID
        assert order.stripe_payment_intent == "pi_123"
        assert order.paid_at is not None

    def test_records_history_and_event(self, order_service, checkout):
        order_service.confirm_payment(checkout.session.session_id, "pi_123")

        entry = OrderStatusHistory.objects.get(
            order_id=checkout.order.id, new_status=OrderStatus.PAID
        )
        assert entry.old_status == OrderStatus.PENDING_PAYMENT
        assert "pi_123" in entry.notes

        (row,) = _events("OrderPaid")
        assert row.aggregate_id == str(checkout.order.id)
        assert row.payload["session_id"] == checkout.session.session_id
        assert row.payload["payment_intent"] == "pi_123"

    def test_repeated_confirmation_is_a_noop(self, order_service, checkout):
        session_id = checkout.session.session_id
        first = order_service.confirm_payment(session_id, "pi_123")
        paid_at = Order.objects.get(id=checkout.order.id).paid_at

        second = order_service.confirm_payment(session_id, "pi_other")

        assert first.applied is True
        assert second.applied is False
        assert second.order.id == checkout.order.id
        order = Order.objects.get(id=checkout.order.id)
        assert order.paid_at == paid_at
        assert order.stripe_payment_intent == "pi_123"
        assert _events("OrderPaid").count() == 1
        assert (
            OrderStatusHistory.objects.filter(
                order_id=order.id, new_status=OrderStatus.PAID
            ).count()
            == 1
        )

    def test_repeated_confirmation_is_logged(self, order_service, checkout, caplog):
        session_id = checkout.session.session_id
        order_service.confirm_payment(session_id)

        with caplog.at_level(logging.INFO):
            order_service.confirm_payment(session_id)

        assert _logged(caplog, "payment.already_confirmed")

    def test_unknown_session_changes_nothing(self, order_service, checkout, caplog):
        with caplog.at_level(logging.INFO):
            result = order_service.confirm_payment("cs_test_unknown")

        assert result.order is None
        assert result.applied is False
        assert Order.objects.get(id=checkout.order.id).status == OrderStatus.PENDING_PAYMENT
        assert _events("OrderPaid").count() == 0
        assert _logged(caplog, "payment.unknown_session")

    def test_order_moved_on_by_admin_is_still_paid(self, order_service, checkout):
        order_service.override_status(str(checkout.order.id), OrderStatus.CONFIRMED)

        result = order_service.confirm_payment(checkout.session.session_id, "pi_real_charge")

        assert result.applied is True
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PAID
        assert order.stripe_payment_intent == "pi_real_charge"
        assert order.paid_at is not None
        assert _events("OrderPaid").count() == 1

    def test_cancelled_order_is_paid_and_logged(self, order_service, checkout, caplog):
        order_service.override_status(str(checkout.order.id), OrderStatus.CANCELLED)

        with caplog.at_level(logging.WARNING):
            result = order_service.confirm_payment(checkout.session.session_id, "pi_late")

        assert result.applied is True
        assert result.order.status == OrderStatus.PAID
        entry = OrderStatusHistory.objects.get(
            order_id=checkout.order.id, new_status=OrderStatus.PAID
        )
        assert entry.old_status == OrderStatus.CANCELLED
        assert _logged(caplog, "payment.confirmed_after_override")

    def test_order_marked_paid_by_hand_is_left_alone(self, order_service, checkout):
        order_service.override_status(str(checkout.order.id), OrderStatus.PAID)

        result = order_service.confirm_payment(checkout.session.session_id, "pi_123")

        assert result.applied is False
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PAID
        assert order.paid_at is None
        assert order.stripe_payment_intent is None
        assert _events("OrderPaid").count() == 0

    def test_confirmation_that_lost_the_race_is_a_noop(self, order_service, checkout):
        # Another worker committed the transition after this request started.
        won_at = timezone.now()
        Order.objects.filter(id=checkout.order.id).update(
            status=OrderStatus.PAID, paid_at=won_at, stripe_payment_intent="pi_winner"
        )

        result = order_service.confirm_payment(checkout.session.session_id, "pi_loser")

        assert result.applied is False
        order = Order.objects.get(id=checkout.order.id)
        assert order.paid_at == won_at
        assert order.stripe_payment_intent == "pi_winner"
        assert _events("OrderPaid").count() == 0

    def test_reopened_paid_order_is_not_paid_twice(self, order_service, checkout):
        session_id = checkout.session.session_id
        order_service.confirm_payment(session_id, "pi_123")
        order_service.override_status(str(checkout.order.id), OrderStatus.PENDING_PAYMENT)

        result = order_service.confirm_payment(session_id, "pi_123")

        assert result.applied is False
        assert _events("OrderPaid").count() == 1


# ---------------------------------------------------------------------------
# Webhook / poll
# ---------------------------------------------------------------------------


class TestHandleWebhook:
    def test_completed_session_confirms_payment(
        self, order_service, checkout, webhook_event
    ):
        payload = webhook_event(checkout.session.session_id, payment_intent="pi_hook")

        result = order_service.handle_webhook(payload, signature=None)

        assert result.applied is True
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PAID
        assert order.stripe_payment_intent == "pi_hook"

    def test_replayed_event_is_a_noop(self, order_service, checkout, webhook_event):
        payload = webhook_event(checkout.session.session_id)

        order_service.handle_webhook(payload, signature=None)
        replay = order_service.handle_webhook(payload, signature=None)

        assert replay.applied is False
        assert _events("OrderPaid").count() == 1

    def test_unpaid_completed_session_waits(self, order_service, checkout, webhook_event):
        payload = webhook_event(checkout.session.session_id, payment_status="unpaid")

        assert order_service.handle_webhook(payload, signature=None) is None
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PENDING_PAYMENT

    def test_async_payment_succeeded_confirms(
        self, order_service, checkout, webhook_event
    ):
        payload = webhook_event(
            checkout.session.session_id,
            event_type="checkout.session.async_payment_succeeded",
        )

        result = order_service.handle_webhook(payload, signature=None)

        assert result.applied is True

    @pytest.mark.parametrize(
        "event_type",
        ["payment_intent.succeeded", "checkout.session.expired", "charge.refunded"],
    )
    def test_other_event_types_are_ignored(
        self, order_service, checkout, webhook_event, event_type
    ):
        payload = webhook_event(checkout.session.session_id, event_type=event_type)

        assert order_service.handle_webhook(payload, signature=None) is None
        assert Order.objects.get(id=checkout.order.id).status == OrderStatus.PENDING_PAYMENT

    def test_unknown_session_is_acknowledged(self, order_service, webhook_event):
        result = order_service.handle_webhook(
            webhook_event("cs_test_elsewhere"), signature=None
        )

        assert result.order is None
        assert result.applied is False

    @pytest.mark.parametrize(
        "event",
        [
            {"type": "checkout.session.completed", "data": "x"},
            {"type": "checkout.session.completed", "data": {"object": ["cs_test_0001"]}},
            {"type": "checkout.session.completed", "data": {"object": "cs_test_0001"}},
        ],
    )
    def test_malformed_event_is_rejected(self, order_service, checkout, event):
        with pytest.raises(SignatureVerificationFailed):
            order_service.handle_webhook(json.dumps(event).encode(), signature=None)

        assert Order.objects.get(id=checkout.order.id).status == OrderStatus.PENDING_PAYMENT

    def test_webhooks_are_handled_while_checkout_is_disabled(
        self, order_service, checkout, fake_gateway, webhook_event
    ):
        fake_gateway.configured = False

        result = order_service.handle_webhook(
            webhook_event(checkout.session.session_id), signature=None
        )

        assert result.applied is True


class TestSyncSession:
    def test_unpaid_session_leaves_order_pending(self, order_service, checkout):
        status = order_service.sync_session(checkout.session.session_id)

        assert status.payment_status == "unpaid"
        assert status.amount_total == 547
        assert Order.objects.get(id=checkout.order.id).status == OrderStatus.PENDING_PAYMENT

    def test_paid_session_confirms_order(self, order_service, checkout, fake_gateway):
        fake_gateway.complete(checkout.session.session_id, payment_intent="pi_poll")

        status = order_service.sync_session(checkout.session.session_id)

        assert status.is_paid
        order = Order.objects.get(id=checkout.order.id)
        assert order.status == OrderStatus.PAID
        assert order.stripe_payment_intent == "pi_poll"

    def test_poll_after_webhook_is_a_noop(
        self, order_service, checkout, fake_gateway, webhook_event
    ):
        session_id = checkout.session.session_id
        order_service.handle_webhook(webhook_event(session_id), signature=None)
        fake_gateway.complete(session_id)

        order_service.sync_session(session_id)
        order_service.sync_session(session_id)

        assert _events("OrderPaid").count() == 1

    def test_provider_error_propagates(self, order_service, checkout, fake_gateway):
        fake_gateway.error = GatewayError("timeout")

        with pytest.raises(GatewayError):
            order_service.sync_session(checkout.session.session_id)

    def test_requires_configured_gateway(self, order_service, fake_gateway):
        fake_gateway.configured = False

        with pytest.raises(PaymentsNotConfigured):
            order_service.sync_session("cs_test_0001")


# ---------------------------------------------------------------------------
# Admin override
# ---------------------------------------------------------------------------


class TestOverrideStatus:
    def test_moves_order_forward(self, order_service, manual_order):
        order = order_service.override_status(
            str(manual_order.id), OrderStatus.CONFIRMED, notes="Betalning mottagen via Swish"
        )

        assert order.status == OrderStatus.CONFIRMED
        entry = OrderStatusHistory.objects.get(
            order=manual_order, new_status=OrderStatus.CONFIRMED
        )
        assert entry.old_status == OrderStatus.PENDING
        assert entry.notes == "Betalning mottagen via Swish"

    def test_writes_status_changed_event(self, order_service, manual_order):
        order_service.override_status(str(manual_order.id), OrderStatus.SHIPPED)

        (row,) = _events("OrderStatusChanged")
        assert row.payload["old_status"] == OrderStatus.PENDING
        assert row.payload["new_status"] == OrderStatus.SHIPPED

    def test_offline_payment_can_be_marked_paid(self, order_service, manual_order):
        order = order_service.override_status(
            str(manual_order.id), OrderStatus.PAID, notes="Swish mottagen"
        )

        assert order.status == OrderStatus.PAID
        assert order.paid_at is None
        assert order.stripe_payment_intent is None
        entry = OrderStatusHistory.objects.get(
            order=manual_order, new_status=OrderStatus.PAID
        )
        assert entry.old_status == OrderStatus.PENDING
        assert _events("OrderPaid").count() == 0
        assert _events("OrderStatusChanged").count() == 1

    def test_unknown_status_rejected(self, order_service, manual_order):
        with pytest.raises(InvalidOrderStatus):
            order_service.override_status(str(manual_order.id), "lost_in_post")

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.override_status(str(uuid4()), OrderStatus.SHIPPED)

    def test_malformed_order_id(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.override_status("not-a-uuid", OrderStatus.SHIPPED)

    def test_same_status_is_a_noop(self, order_service, manual_order):
        order_service.override_status(str(manual_order.id), OrderStatus.PENDING)

        assert OrderStatusHistory.objects.filter(order=manual_order).count() == 1
        assert _events("OrderStatusChanged").count() == 0

    def test_backwards_move_is_allowed_and_logged(
        self, order_service, manual_order, caplog
    ):
        order_service.override_status(str(manual_order.id), OrderStatus.SHIPPED)

        with caplog.at_level(logging.WARNING):
            order = order_service.override_status(str(manual_order.id), OrderStatus.PENDING)

        assert order.status == OrderStatus.PENDING
        assert _logged(caplog, "order.moved_backwards")

    def test_terminal_order_can_be_reopened(self, order_service, manual_order, caplog):
        order_service.override_status(str(manual_order.id), OrderStatus.CANCELLED)

        with caplog.at_level(logging.WARNING):
            order = order_service.override_status(
                str(manual_order.id), OrderStatus.CONFIRMED
            )

        assert order.status == OrderStatus.CONFIRMED
        assert _logged(caplog, "order.reopened_terminal")

    def test_payment_fields_survive_overrides(self, order_service, checkout):
        order_service.confirm_payment(checkout.session.session_id, "pi_123")
        paid_at = Order.objects.get(id=checkout.order.id).paid_at

        for status in (OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.PENDING):
            order_service.override_status(str(checkout.order.id), status)

        order = Order.objects.get(id=checkout.order.id)
        assert order.paid_at == paid_at
        assert order.stripe_payment_intent == "pi_123"

    def test_history_is_ordered(self, order_service, manual_order):
        for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.COMPLETED):
            order_service.override_status(str(manual_order.id), status)

        order = order_service.get_order(str(manual_order.id))
        assert [h.new_status for h in order.status_history.all()] == [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.SHIPPED,
            OrderStatus.COMPLETED,
        ]


class TestQueries:
    def test_get_order_not_found(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.get_order(str(uuid4()))
