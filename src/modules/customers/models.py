"""Customer model with loyalty balances and purchase statistics.

Customer accounts are created by the account-management system; this
module only reads them and mutates the loyalty / purchase columns.

Business rules implemented:
- Inactive customer cannot place orders (enforced at the order service).
- ``loyalty_current`` is the redeemable balance, ``loyalty_total`` the
  lifetime earned points (net of removals), ``loyalty_used`` the lifetime
  redeemed points (net of refunds).  All three are mutated only through
  ``modules.loyalty.services.LoyaltyService`` using atomic ``F()`` updates.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.conf import settings
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Customer(SoftDeleteModel):
    """Customer aggregate root.

    ``user`` links the customer to the authenticated principal so order
    ownership can be checked on customer-initiated requests.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    # Loyalty balances
    loyalty_current = models.IntegerField(default=0)
    loyalty_total = models.IntegerField(default=0)
    loyalty_used = models.IntegerField(default=0)

    # Purchase statistics (updated when points are awarded on delivery)
    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    average_order_value = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    last_order_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="customers_created_idx"),
            models.Index(fields=["is_active"], name="customers_active_idx"),
        ]

    @property
    def loyalty_points(self) -> dict[str, int]:
        return {
            "current": self.loyalty_current,
            "total": self.loyalty_total,
            "used": self.loyalty_used,
        }

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
