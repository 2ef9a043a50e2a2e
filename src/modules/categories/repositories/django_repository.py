"""Django ORM implementation of the Category repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.categories.models import Category
from modules.categories.repositories.interfaces import ICategoryRepository

logger = structlog.get_logger(__name__)


class CategoryDjangoRepository(ICategoryRepository):
    def get_by_id(self, id: str) -> Optional[Category]:
        try:
            return Category.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_slug(self, slug: str) -> Optional[Category]:
        return Category.objects.filter(slug=slug).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Category]:
        queryset = Category.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Category) -> Category:
        entity.save()
        logger.info("category.saved", category_id=str(entity.id), slug=entity.slug)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Hard-delete a category; products keep their slug reference."""
        category = self.get_by_id(id)
        if not category:
            return False
        category.delete()
        logger.info("category.deleted", category_id=str(id))
        return True
