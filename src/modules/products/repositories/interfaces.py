"""Product repository interface.

Besides CRUD, exposes the batch look-up the order builder uses to price a
cart with a single query.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable

from modules.core.repositories.interfaces import IDeletableRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IDeletableRepository["Product"]):
    """Repository contract for the Product aggregate.

    ``get_by_id`` and ``get_many`` only return live (not soft-deleted) rows.
    """

    @abstractmethod
    def get_many(self, ids: Iterable[str]) -> Dict[str, Product]:
        """Map ``str(id)`` -> live product for every resolvable id."""
