"""Product DTOs for the Service Layer.

Framework-agnostic, immutable Pydantic v2 models passed from the API layer
to ``ProductService``.

- ``CreateProductDTO``: input for product creation.
- ``UpdateProductDTO``: input for partial product updates.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def _positive_price(v: Optional[int]) -> Optional[int]:
    if v is not None and v <= 0:
        raise ValueError("Price must be greater than zero.")
    return v


class CreateProductDTO(BaseModel):
    """Validates:
    - ``name`` and ``category`` are non-empty.
    - ``price`` is a whole number greater than zero.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    category: str
    price: int
    description: str = ""
    image: str = ""
    weight: str = ""
    origin: str = ""
    in_stock: bool = True
    featured: bool = False

    @field_validator("name", "category")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty.")
        return v.strip()

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: int) -> int:
        return _positive_price(v)


class UpdateProductDTO(BaseModel):
    """All fields optional; only supplied fields are written."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[int] = None
    description: Optional[str] = None
    image: Optional[str] = None
    weight: Optional[str] = None
    origin: Optional[str] = None
    in_stock: Optional[bool] = None
    featured: Optional[bool] = None

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[int]) -> Optional[int]:
        return _positive_price(v)

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)
