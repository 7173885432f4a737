"""Product repository interface.

Extends ``IRepository[Product]`` with the bulk and locking look-ups the
order module needs when snapshotting carts and moving stock.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Product]":
        """List products with optional filters."""

    @abstractmethod
    def in_bulk(self, ids: Iterable[Any]) -> Dict[Any, "Product"]:
        """Return live products keyed by primary key."""

    @abstractmethod
    def get_for_update(self, id: Any) -> Optional["Product"]:
        """Retrieve a product with a row-level lock (SELECT FOR UPDATE).

        Used by the stock service for atomic stock adjustment.
        Returns ``None`` if the product does not exist.
        """
