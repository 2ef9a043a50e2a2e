"""Order repository interface.

Extends ``IRepository[Order]`` with the look-ups and writes the order
lifecycle needs: creation from a priced draft, session-id look-up, the
conditional paid update, and status history tracking.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import OrderDraft
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes its ``OrderStatusHistory`` records.  Domain
    events collected on the order are written to the outbox by ``save``
    and ``store_events``.
    """

    @abstractmethod
    def create(
        self,
        draft: OrderDraft,
        *,
        status: str,
        payment_method: str,
        order_id: Optional[UUID] = None,
        stripe_session_id: Optional[str] = None,
    ) -> Order:
        """Persist a new order from a priced draft."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched status history."""

    @abstractmethod
    def get_by_session_id(self, session_id: str) -> Optional[Order]:
        """Retrieve the order bound to a payment session."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def mark_paid(
        self,
        session_id: str,
        payment_intent: Optional[str],
        paid_at: datetime,
    ) -> Optional[Order]:
        """Move the session's order to ``paid`` unless it is already paid.

        Must be a single conditional write guarded by ``status <> paid`` and
        ``paid_at IS NULL``.  Returns the updated order when this call
        performed the transition, ``None`` when no row matched (unknown
        session, already paid, or paid before and since reopened).
        """

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def store_events(self, entity: Order) -> int:
        """Write the order's pending domain events to the outbox."""
