"""Order and OrderStatusHistory models.

Business rules implemented:
- Customer data and line items are snapshots taken when the order is
  placed; there is no link to live customer or product rows.
- ``subtotal``, ``shipping`` and ``total`` are whole SEK, computed once by
  the order builder and never recomputed from ``items``.
- ``stripe_session_id`` is unique and nullable: only card orders carry one.
- ``paid_at`` is stamped once, by the payment confirmation update.
- Orders are never deleted.
- Each status change is recorded in ``OrderStatusHistory``.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    STATUS_RANK,
    TERMINAL_STATES,
    OrderStatus,
    PaymentMethod,
)
from shared.domain.events import DomainEventMixin


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``items`` is a list of ``{product_id, name, price, quantity, subtotal}``
    dicts.  The UUIDv7 ``id`` may be allocated by the caller before the row
    exists (card checkout embeds it in the payment session).
    """

    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    address = models.CharField(max_length=255)
    postal_code = models.CharField(max_length=20)
    city = models.CharField(max_length=100)

    items = models.JSONField(default=list)
    subtotal = models.PositiveIntegerField()
    shipping = models.PositiveIntegerField(default=0)
    total = models.PositiveIntegerField()
    notes = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.MANUAL,
    )
    stripe_session_id = models.CharField(  # noqa: DJ01
        max_length=255, unique=True, null=True, blank=True, default=None
    )
    stripe_payment_intent = models.CharField(  # noqa: DJ01
        max_length=255, null=True, blank=True, default=None
    )
    paid_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total=models.F("subtotal") + models.F("shipping")),
                name="orders_total_is_subtotal_plus_shipping",
            ),
        ]

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    def is_backwards_move(self, new_status: str) -> bool:
        """Return ``True`` if *new_status* ranks below the current status."""
        return STATUS_RANK.get(new_status, 0) < STATUS_RANK.get(self.status, 0)

    def __str__(self) -> str:
        return f"{self.id} ({self.status}, {self.total} kr)"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status changes.

    ``old_status`` is ``None`` for the record written when the order is
    placed.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
