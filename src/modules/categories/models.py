"""Catalog taxonomy.

Categories are plain CRUD data: products reference them by ``slug``
(not by FK) so renaming or deleting a category never touches a product row.
"""

from __future__ import annotations

from django.db import models
from django.utils.text import slugify

from modules.core.models import BaseModel

DEFAULT_ICON = "📦"


class Category(BaseModel):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True, allow_unicode=True)
    icon = models.CharField(max_length=10, default=DEFAULT_ICON, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        db_table = "categories"
        ordering = ["sort_order", "name"]
        verbose_name_plural = "categories"

    def save(self, *args, **kwargs) -> None:
        if not self.slug:
            self.slug = slugify(self.name, allow_unicode=True)
        if not self.icon:
            self.icon = DEFAULT_ICON
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.icon} {self.name}"
