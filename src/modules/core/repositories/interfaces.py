"""Generic repository contract (Dependency Inversion Principle).

Services depend on these abstractions; the Django ORM implementations live
next to each module's models.  Look-ups follow the Null Object convention:
a missing or malformed identifier yields ``None``, never an ORM exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base contract for an aggregate ``T`` (``Product``, ``Order`` ...)."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """List entities matching optional ORM look-ups."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an entity."""


class IDeletableRepository(IRepository[T]):
    """Repositories whose aggregates may be removed."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove an entity by ID; ``False`` if nothing matched."""
