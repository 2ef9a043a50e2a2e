"""Product catalog model.

Business rules implemented:
- Price is a positive whole number of SEK.
- ``category`` holds a category *slug*; no FK, so the taxonomy can be
  rearranged without touching products.
- Soft delete via ``deleted_at``: deleted products disappear from the catalog
  and can no longer be ordered, while orders keep their own item snapshots.
"""

from __future__ import annotations

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Product(SoftDeleteModel):
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, db_index=True)
    price = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    description = models.TextField(blank=True, default="")
    image = models.CharField(max_length=255, blank=True, default="")
    weight = models.CharField(max_length=50, blank=True, default="")
    origin = models.CharField(max_length=100, blank=True, default="")
    in_stock = models.BooleanField(default=True)
    featured = models.BooleanField(default=False)

    class Meta:
        db_table = "products"
        ordering = ["category", "name"]
        indexes = [
            models.Index(fields=["featured"], name="products_featured_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    @property
    def is_orderable(self) -> bool:
        return self.in_stock and not self.is_deleted

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                category=self.category,
                name=self.name,
            )

    def __str__(self) -> str:
        return f"{self.name} ({self.price} kr)"
