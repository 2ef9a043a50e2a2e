"""Category repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IDeletableRepository

if TYPE_CHECKING:
    from modules.categories.models import Category


class ICategoryRepository(IDeletableRepository["Category"]):
    """Repository contract for the Category aggregate."""

    @abstractmethod
    def get_by_slug(self, slug: str) -> Optional[Category]:
        """Retrieve a category by its unique slug."""
