"""Order service layer (Use Cases).

Owns the order lifecycle: placing manual orders, opening card checkouts,
confirming payments from the webhook and the redirect poll, and admin
status overrides.

Business rules enforced:
- An order is priced by ``OrderBuilder`` before anything is persisted.
- A card order is persisted only after the provider session exists.
- ``confirm_payment`` pays a session at most once; duplicate or late
  confirmations are no-ops.  Only it writes ``paid_at`` and the payment
  intent.
- Admins may set any status by hand, ``paid`` included.
- Every status change is recorded in the history and raises a domain
  event in the outbox.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog
import uuid6
from django.db import transaction
from django.utils import timezone

from modules.core.tasks import dispatch_outbox_events
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.events import OrderPaid, OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.pricing import OrderBuilder
from modules.payments.exceptions import (
    PaymentsNotConfigured,
    SignatureVerificationFailed,
)

if TYPE_CHECKING:
    from modules.orders.dtos import OrderDraft, PlaceOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.dtos import CheckoutSessionDTO, SessionStatusDTO
    from modules.payments.gateways import IPaymentGateway
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    session: CheckoutSessionDTO


@dataclass(frozen=True)
class PaymentConfirmation:
    """Outcome of ``confirm_payment``.

    ``order`` is ``None`` for an unknown session.  ``applied`` is ``True``
    only for the call that moved the order to ``paid``.
    """

    order: Optional[Order]
    applied: bool


def _schedule_outbox_dispatch() -> None:
    transaction.on_commit(dispatch_outbox_events.delay, robust=True)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and the payment gateway via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        payment_gateway: Optional[IPaymentGateway] = None,
        builder: Optional[OrderBuilder] = None,
    ) -> None:
        self._order_repo = order_repository
        self._gateway = payment_gateway
        self._builder = builder or OrderBuilder(product_repository)

    # ------------------------------------------------------------------
    # Placing orders
    # ------------------------------------------------------------------

    @transaction.atomic
    def place_manual_order(self, dto: PlaceOrderDTO) -> Order:
        """Persist a ``pending`` order awaiting offline confirmation.

        Raises:
            ProductNotFound: a product is unknown or deleted.
            ProductUnavailable: a product is out of stock.
        """
        draft = self._builder.build(dto)
        order = self._persist(draft, OrderStatus.PENDING, PaymentMethod.MANUAL)
        logger.info("order.placed", order_id=str(order.id), total=order.total)
        return order

    def start_checkout(self, dto: PlaceOrderDTO) -> CheckoutResult:
        """Price the cart, open a provider session, then persist the order.

        The provider call happens outside any database transaction.  If it
        fails nothing is written.

        Raises:
            ProductNotFound / ProductUnavailable: cart cannot be priced.
            GatewayError: the provider rejected the session.
        """
        draft = self._builder.build(dto)
        gateway = self._require_gateway()

        order_id = uuid6.uuid7()
        log = logger.bind(order_id=str(order_id))
        log.info("checkout.started", total=draft.total)

        session = gateway.create_session(order_id, draft, dto.customer.email)

        with transaction.atomic():
            order = self._persist(
                draft,
                OrderStatus.PENDING_PAYMENT,
                PaymentMethod.STRIPE,
                order_id=order_id,
                stripe_session_id=session.session_id,
            )
        log.info("checkout.session_bound", session_id=session.session_id)
        return CheckoutResult(order=order, session=session)

    def _persist(
        self,
        draft: OrderDraft,
        status: str,
        payment_method: str,
        order_id: Optional[UUID] = None,
        stripe_session_id: Optional[str] = None,
    ) -> Order:
        order = self._order_repo.create(
            draft,
            status=status,
            payment_method=payment_method,
            order_id=order_id,
            stripe_session_id=stripe_session_id,
        )
        self._order_repo.add_history(order.id, status, notes="Order placed")
        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                payment_method=payment_method,
                total=order.total,
            )
        )
        self._order_repo.store_events(order)
        _schedule_outbox_dispatch()
        return order

    # ------------------------------------------------------------------
    # Payment confirmation
    # ------------------------------------------------------------------

    @transaction.atomic
    def confirm_payment(
        self, session_id: str, payment_intent: Optional[str] = None
    ) -> PaymentConfirmation:
        """Mark the session's order as paid, at most once.

        Shared by the webhook and the redirect poll.  Any order not yet
        paid is moved to ``paid``, including one an admin confirmed or
        cancelled while the payment was in flight: the charge is real.  The
        conditional update in ``mark_paid`` decides which caller wins;
        every other call is a logged no-op.
        """
        log = logger.bind(session_id=session_id)

        existing = self._order_repo.get_by_session_id(session_id)
        if existing is None:
            log.warning("payment.unknown_session")
            return PaymentConfirmation(order=None, applied=False)
        previous_status = existing.status

        order = self._order_repo.mark_paid(session_id, payment_intent, timezone.now())
        if order is None:
            current = self._order_repo.get_by_session_id(session_id) or existing
            log.info(
                "payment.already_confirmed",
                order_id=str(current.id),
                status=current.status,
            )
            return PaymentConfirmation(order=current, applied=False)

        if previous_status != OrderStatus.PENDING_PAYMENT:
            log.warning(
                "payment.confirmed_after_override",
                order_id=str(order.id),
                previous_status=previous_status,
            )
        self._order_repo.add_history(
            order.id,
            OrderStatus.PAID,
            notes=f"Payment confirmed ({payment_intent or 'no payment intent'})",
            old_status=previous_status,
        )
        order.add_domain_event(
            OrderPaid(
                aggregate_id=order.id,
                session_id=session_id,
                payment_intent=payment_intent,
            )
        )
        self._order_repo.store_events(order)
        _schedule_outbox_dispatch()

        log.info("payment.confirmed", order_id=str(order.id))
        return PaymentConfirmation(order=order, applied=True)

    def handle_webhook(
        self, payload: bytes, signature: Optional[str]
    ) -> Optional[PaymentConfirmation]:
        """Process a provider webhook.

        Only completed checkout sessions drive a confirmation; any other
        event type is acknowledged and ignored.  A session completed with
        a deferred payment method (``payment_status == "unpaid"``) waits
        for ``checkout.session.async_payment_succeeded``.

        Raises:
            SignatureVerificationFailed: the payload is not authentic, or its
                ``data.object`` is not an object.
        """
        event = self._require_gateway(strict=False).parse_webhook(payload, signature)
        event_type = event.get("type")
        data = event.get("data") or {}
        session = (data.get("object") or {}) if isinstance(data, dict) else None
        if not isinstance(session, dict):
            logger.warning("payment.webhook_malformed", event_type=event_type)
            raise SignatureVerificationFailed("Invalid payload.")
        session_id = session.get("id")
        log = logger.bind(event_type=event_type, session_id=session_id)

        if event_type not in (SESSION_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
            log.info("payment.webhook_ignored")
            return None
        if not session_id:
            log.warning("payment.webhook_without_session")
            return None
        if event_type == SESSION_COMPLETED and session.get("payment_status") == "unpaid":
            log.info("payment.awaiting_async_payment")
            return None

        return self.confirm_payment(session_id, session.get("payment_intent"))

    def sync_session(self, session_id: str) -> SessionStatusDTO:
        """Poll the provider after redirect-back; confirm if it reports paid.

        Raises:
            GatewayError: the provider could not be reached.
        """
        status = self._require_gateway().retrieve_session(session_id)
        if status.is_paid:
            self.confirm_payment(session_id, status.payment_intent)
        return status

    def _require_gateway(self, strict: bool = True) -> IPaymentGateway:
        if self._gateway is None or (strict and not self._gateway.is_configured):
            raise PaymentsNotConfigured("Payment provider is not configured.")
        return self._gateway

    # ------------------------------------------------------------------
    # Admin override
    # ------------------------------------------------------------------

    @transaction.atomic
    def override_status(self, order_id: str, new_status: str, notes: str = "") -> Order:
        """Set any status on an order, ``paid`` included.

        Marks an offline payment as ``paid`` for manual orders.  Backwards
        moves and moves out of a terminal status are allowed for
        operational corrections but logged as warnings.  ``paid_at`` and the
        payment intent are never touched here.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: unknown status.
        """
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(f"Unknown status '{new_status}'.")

        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        old_status = order.status
        log = logger.bind(
            order_id=str(order.id), current_status=old_status, new_status=new_status
        )
        if old_status == new_status:
            log.info("order.status_unchanged")
            return order
        if order.is_terminal:
            log.warning("order.reopened_terminal")
        elif order.is_backwards_move(new_status):
            log.warning("order.moved_backwards")

        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=old_status, new_status=new_status
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order.id, new_status, notes=notes, old_status=old_status
        )
        _schedule_outbox_dispatch()

        log.info("order.status_overridden")
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Raises:
        OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order
