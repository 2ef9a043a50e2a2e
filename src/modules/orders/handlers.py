"""Event handlers for Orders domain events.

They run in the outbox dispatcher; fulfilment hooks (e-mail, packing
lists) attach here.
"""

from __future__ import annotations

import structlog

from modules.orders.events import OrderPaid, OrderPlaced, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    def handle(self, event: OrderPlaced) -> None:
        logger.info(
            "order.event.placed",
            order_id=str(event.aggregate_id),
            payment_method=event.payment_method,
            total=event.total,
        )


class OrderPaidHandler(IEventHandler[OrderPaid]):
    def handle(self, event: OrderPaid) -> None:
        logger.info(
            "order.event.paid",
            order_id=str(event.aggregate_id),
            session_id=event.session_id,
            payment_intent=event.payment_intent,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
        )


order_placed_handler = OrderPlacedHandler()
order_paid_handler = OrderPaidHandler()
order_status_changed_handler = OrderStatusChangedHandler()
