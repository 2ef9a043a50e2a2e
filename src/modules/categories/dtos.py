"""Category DTOs for the Service Layer (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Optional

from django.utils.text import slugify
from pydantic import BaseModel, ConfigDict, field_validator


def _normalise_slug(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return slugify(value, allow_unicode=True) or None


class CreateCategoryDTO(BaseModel):
    """Input for category creation.

    ``slug`` defaults to the slugified ``name`` when omitted.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    slug: Optional[str] = None
    icon: str = ""
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()

    @field_validator("slug")
    @classmethod
    def normalise_slug(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_slug(v)

    @property
    def resolved_slug(self) -> str:
        return self.slug or slugify(self.name, allow_unicode=True)


class UpdateCategoryDTO(BaseModel):
    """Partial update; ``None`` means "leave unchanged"."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("slug")
    @classmethod
    def normalise_slug(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_slug(v)
