"""Customer repository interface.

Extends ``IRepository[Customer]`` with the look-ups the order and loyalty
services need: resolving the customer behind an authenticated user and
locking a customer row before a ledger posting.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for the Customer aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Customer]":
        """List customers with optional filters."""

    @abstractmethod
    def get_by_user(self, user_id: Any) -> Optional[Customer]:
        """Retrieve the customer linked to an authenticated user."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Customer]:
        """Retrieve a customer with a row-level lock (SELECT FOR UPDATE)."""
