"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with cart lines, status history tracking,
row locking for transitions and idempotency-key look-up.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem, ChecklistItem and
    OrderStatusHistory children.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its cart lines atomically.

        ``data`` holds the order columns plus ``items``: a list of dicts
        with ``product_id``, ``title``, ``quantity``, ``unit_price``,
        ``pack_qty`` and ``unit_name``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched children."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> "QuerySet[Order]":
        """List orders with optional filters."""

    @abstractmethod
    def list_for_driver(self, driver_id: Any, active_only: bool = True) -> List[Order]:
        """Orders assigned to a driver, optionally only those still in progress."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, customer_id: Any, key: str) -> Optional[Order]:
        """Retrieve a customer's order by its idempotency key.

        Keys are scoped per customer; another customer's order is never
        returned.
        """
