"""Order domain constants.

Status choices and the payment methods an order can be placed with.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Väntar på bekräftelse"
    PENDING_PAYMENT = "pending_payment", "Väntar på betalning"
    PAID = "paid", "Betald"
    CONFIRMED = "confirmed", "Bekräftad"
    SHIPPED = "shipped", "Skickad"
    COMPLETED = "completed", "Slutförd"
    CANCELLED = "cancelled", "Avbruten"


class PaymentMethod(models.TextChoices):
    MANUAL = "manual", "Manuell"
    STRIPE = "stripe", "Kort / Klarna"


TERMINAL_STATES: set[str] = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

# Rank used only to detect backwards admin overrides; ``pending`` and
# ``pending_payment`` are both entry states.
STATUS_RANK: dict[str, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.PENDING_PAYMENT: 0,
    OrderStatus.PAID: 1,
    OrderStatus.CONFIRMED: 2,
    OrderStatus.SHIPPED: 3,
    OrderStatus.COMPLETED: 4,
    OrderStatus.CANCELLED: 4,
}
