"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CustomerSnapshotDTO``: who the order ships to.
- ``CartItemDTO``: a single cart line (product id + quantity).
- ``PlaceOrderDTO``: input for manual orders and card checkout.
- ``OrderLineDTO``: a priced line, frozen into ``Order.items``.
- ``OrderDraft``: the priced, unpersisted result of the order builder.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CustomerSnapshotDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: EmailStr
    phone: str = ""
    address: str
    postal_code: str
    city: str

    @field_validator("name", "address", "postal_code", "city")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty.")
        return v.strip()


class CartItemDTO(BaseModel):
    """One cart line.  Price is never taken from the client."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class PlaceOrderDTO(BaseModel):
    """Immutable DTO for order placement.

    Validates:
    - ``items`` must contain at least one item.
    - A product appears at most once.
    """

    model_config = ConfigDict(frozen=True)

    customer: CustomerSnapshotDTO
    items: List[CartItemDTO]
    notes: Optional[str] = ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[CartItemDTO]) -> List[CartItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_products(self):
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self


# ---------------------------------------------------------------------------
# Builder output
# ---------------------------------------------------------------------------


class OrderLineDTO(BaseModel):
    """A priced line item.

    ``weight`` and ``origin`` are only used to describe the line to the
    payment provider; they are not stored on the order.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    name: str
    price: int
    quantity: int
    weight: str = ""
    origin: str = ""

    @property
    def subtotal(self) -> int:
        return self.price * self.quantity

    def snapshot(self) -> Dict[str, Any]:
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }


class OrderDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    customer: CustomerSnapshotDTO
    lines: List[OrderLineDTO]
    subtotal: int
    shipping: int
    total: int
    notes: str = ""

    @model_validator(mode="after")
    def total_matches(self):
        if self.total != self.subtotal + self.shipping:
            raise ValueError("total must equal subtotal + shipping.")
        return self

    def items_snapshot(self) -> List[Dict[str, Any]]:
        return [line.snapshot() for line in self.lines]
