"""Loyalty ledger.

``LoyaltyTransaction`` rows are append-only: once written, only ``status``
may move (``active -> used`` or ``active -> expired``).  The balances on
``Customer`` are a cache of the ledger and can be replayed from it with
``LoyaltyService.reconcile``.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from modules.core.models import BaseModel
from modules.loyalty.constants import TransactionStatus, TransactionType


class LoyaltyTransaction(BaseModel):
    """A signed posting against a customer's points balance."""

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="loyalty_transactions",
    )
    type = models.CharField(max_length=10, choices=TransactionType.choices)
    points = models.IntegerField()
    description = models.CharField(max_length=255, blank=True, default="")
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="loyalty_transactions",
    )
    balance_after = models.IntegerField()
    expiry_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=10,
        choices=TransactionStatus.choices,
        default=TransactionStatus.ACTIVE,
    )
    discount_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        db_table = "loyalty_transactions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["customer", "-created_at"], name="loyalty_customer_idx"
            ),
            models.Index(
                fields=["type", "status", "expiry_date"], name="loyalty_expiry_idx"
            ),
            models.Index(fields=["order", "type"], name="loyalty_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.type} {self.points:+d} ({self.status})"
