"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.

Two concurrency tools are used:
- ``mark_paid`` is a single ``UPDATE ... WHERE status <> 'paid' AND
  paid_at IS NULL``; the affected row count decides whether the caller
  performed the transition.
- ``get_for_update`` takes a row lock (``SELECT FOR UPDATE``) for admin
  status overrides.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

if TYPE_CHECKING:
    from modules.orders.dtos import OrderDraft

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(
        self,
        draft: OrderDraft,
        *,
        status: str,
        payment_method: str,
        order_id: Optional[UUID] = None,
        stripe_session_id: Optional[str] = None,
    ) -> Order:
        customer = draft.customer
        order = Order(
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            address=customer.address,
            postal_code=customer.postal_code,
            city=customer.city,
            items=draft.items_snapshot(),
            subtotal=draft.subtotal,
            shipping=draft.shipping,
            total=draft.total,
            notes=draft.notes,
            status=status,
            payment_method=payment_method,
            stripe_session_id=stripe_session_id,
        )
        if order_id is not None:
            order.id = order_id
        order.save(force_insert=True)

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            status=status,
            item_count=len(order.items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or malformed IDs."""
        try:
            return Order.objects.prefetch_related("status_history").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_session_id(self, session_id: str) -> Optional[Order]:
        if not session_id:
            return None
        return Order.objects.filter(stripe_session_id=session_id).first()

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Supported filter keys are plain ORM look-ups, e.g.::

            {"status": "paid"}
            {"payment_method": "stripe"}
        """
        queryset = Order.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    # ------------------------------------------------------------------
    # Payment confirmation
    # ------------------------------------------------------------------

    @transaction.atomic
    def mark_paid(
        self,
        session_id: str,
        payment_intent: Optional[str],
        paid_at: datetime,
    ) -> Optional[Order]:
        updated = Order.objects.filter(
            ~Q(status=OrderStatus.PAID),
            stripe_session_id=session_id,
            paid_at__isnull=True,
        ).update(
            status=OrderStatus.PAID,
            stripe_payment_intent=payment_intent,
            paid_at=paid_at,
            updated_at=paid_at,
        )
        if updated != 1:
            return None
        return Order.objects.get(stripe_session_id=session_id)

    # ------------------------------------------------------------------
    # Save (IRepository contract) / outbox
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and flush its domain events to the outbox."""
        entity.save()
        count = self.store_events(entity)
        logger.info("order.saved", order_id=str(entity.id), event_count=count)
        return entity

    @transaction.atomic
    def store_events(self, entity: Order) -> int:
        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic=OUTBOX_TOPIC,
            )
        entity.clear_domain_events()
        return len(events)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history
