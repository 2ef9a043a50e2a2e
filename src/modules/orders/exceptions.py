"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from modules.products.exceptions import ProductNotFound

__all__ = [
    "InvalidOrderStatus",
    "OrderNotFound",
    "ProductNotFound",
    "ProductUnavailable",
]


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """The requested status cannot be set on the order."""


class ProductUnavailable(Exception):
    """A product in the cart exists but is out of stock."""

    def __init__(self, product_id: str, name: str = "") -> None:
        self.product_id = product_id
        label = name or product_id
        super().__init__(f"Product {label} is out of stock.")
