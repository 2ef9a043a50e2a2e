"""Django ORM implementation of the Product repository.

Follows the Null Object convention: look-ups return ``None`` (or omit the
key) instead of raising, and the Service Layer decides what a missing
product means.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def _valid_uuids(ids: Iterable[str]) -> List[UUID]:
    valid = []
    for raw in ids:
        try:
            valid.append(UUID(str(raw)))
        except ValueError:
            continue
    return valid


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        uuids = _valid_uuids([id])
        if not uuids:
            return None
        return Product.objects.alive().filter(id=uuids[0]).first()

    def get_many(self, ids: Iterable[str]) -> Dict[str, Product]:
        uuids = _valid_uuids(ids)
        if not uuids:
            return {}
        return {
            str(product.id): product
            for product in Product.objects.alive().filter(id__in=uuids)
        }

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List live products, optionally narrowed by ORM look-ups::

            {"category": "te"}
            {"featured": True}
        """
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a product; ``False`` if no live product matched."""
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(id))
        return True
