"""Product catalogue entry, read by the order module.

Products are maintained by the catalogue system; this module only
snapshots them into orders and adjusts ``stock_quantity`` / ``sales``.

Business rules implemented:
- SKU is unique and normalised to uppercase.
- Inactive product cannot be ordered (enforced at the order service).
- ``stock_quantity`` never drops below zero; decrements are clamped by
  ``StockService``.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(SoftDeleteModel):
    """Sellable product.

    ``unit_name`` and ``pack_qty`` describe how the product is sold, e.g.
    a "box" of 12: one ordered unit removes ``pack_qty`` items from stock.
    """

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    unit_name = models.CharField(max_length=32, blank=True, default="")
    pack_qty = models.PositiveIntegerField(default=1)
    stock_quantity = models.PositiveIntegerField(default=0)
    sales = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE and self.deleted_at is None

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
