"""Category service layer (Use Cases)."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

import structlog
from django.db import transaction

from modules.categories.exceptions import CategoryAlreadyExists, CategoryNotFound
from modules.categories.models import Category

if TYPE_CHECKING:
    from modules.categories.dtos import CreateCategoryDTO, UpdateCategoryDTO
    from modules.categories.repositories.interfaces import ICategoryRepository

logger = structlog.get_logger(__name__)


class CategoryService:
    def __init__(self, repository: ICategoryRepository) -> None:
        self._repo = repository

    @transaction.atomic
    def create_category(self, dto: CreateCategoryDTO) -> Category:
        """Create a category.

        Raises:
            CategoryAlreadyExists: the slug is taken.
        """
        slug = dto.resolved_slug
        if self._repo.get_by_slug(slug):
            logger.warning("category.duplicate_slug", slug=slug)
            raise CategoryAlreadyExists(f"Slug '{slug}' already registered.")

        category = Category(
            name=dto.name,
            slug=slug,
            icon=dto.icon,
            sort_order=dto.sort_order,
        )
        return self._repo.save(category)

    @transaction.atomic
    def update_category(self, id: str, dto: UpdateCategoryDTO) -> Category:
        """Apply the supplied fields.

        Raises:
            CategoryNotFound: no category with ``id``.
            CategoryAlreadyExists: the new slug belongs to another category.
        """
        category = self._repo.get_by_id(id)
        if not category:
            raise CategoryNotFound(f"Category {id} not found.")

        if dto.slug and dto.slug != category.slug:
            clash = self._repo.get_by_slug(dto.slug)
            if clash and clash.id != category.id:
                raise CategoryAlreadyExists(f"Slug '{dto.slug}' already registered.")

        for field in ("name", "slug", "icon", "sort_order"):
            value = getattr(dto, field)
            if value is not None:
                setattr(category, field, value)

        return self._repo.save(category)

    def list_categories(self) -> List[Category]:
        return self._repo.list()

    def get_category(self, id: str) -> Category:
        category = self._repo.get_by_id(id)
        if not category:
            raise CategoryNotFound(f"Category {id} not found.")
        return category

    @transaction.atomic
    def delete_category(self, id: str) -> None:
        if not self._repo.delete(id):
            raise CategoryNotFound(f"Category {id} not found.")
