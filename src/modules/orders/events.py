"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when an order is persisted (manual or card)."""

    payment_method: str = ""
    total: int = 0


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Raised once per order, when payment confirmation is applied."""

    session_id: str = ""
    payment_intent: Optional[str] = None


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an admin overrides the order status."""

    old_status: str = ""
    new_status: str = ""
