"""Generic repository interface (Dependency Inversion Principle).

``IRepository[T]`` is the contract every aggregate repository extends
(orders, customers, products).  Services depend on it, never on the ORM,
so tests can swap a repository for a mock when injecting failures.

Look-ups return ``None`` for a missing entity; raising the module's
``NotFoundError`` subclass is the Service Layer's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base repository contract for an aggregate root ``T``."""

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve a live entity by primary key."""

    @abstractmethod
    def get_for_update(self, id: Any) -> Optional[T]:
        """Retrieve a live entity with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic``; the lock is held
        until the surrounding transaction ends.
        """

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Iterable[T]:
        """List live entities, optionally filtered by field lookups."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist changes to an existing entity."""

    @abstractmethod
    def delete(self, id: Any) -> bool:
        """Soft-delete an entity; ``False`` when it does not exist."""
