"""Order, OrderItem, ChecklistItem and OrderStatusHistory models.

Business rules implemented:
- Status moves only along ``VALID_TRANSITIONS`` (enforced at service layer).
- Each status change generates an append-only history record.
- ``invoice`` is a sequential number starting at 10000, assigned on first
  save and never changed.
- Idempotency via a unique ``(customer, idempotency_key)`` constraint.
- Customer FK uses PROTECT to preserve financial history.
- OrderItem snapshots product title and price at creation time.
- ``verification_code_used`` implies ``status == Delivered`` (DB constraint).
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import IntegrityError, models, transaction

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    INVOICE_MAX_RETRIES,
    INVOICE_START,
    PAYMENT_METHOD_COD,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    CancelledBy,
    OrderStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 10, "decimal_places": 2, "default": Decimal("0.00")}


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``invoice`` is the human-facing identifier; the UUIDv7 ``id`` is used
    for all internal references and API lookups.

    ``verification_code`` is stored in plaintext and shown to the customer
    once, through the notification created for the ``Received`` status.
    """

    invoice = models.PositiveIntegerField(unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.RECEIVED,
    )

    # Money
    sub_total = models.DecimalField(**MONEY)
    shipping_cost = models.DecimalField(**MONEY)
    discount = models.DecimalField(**MONEY)
    loyalty_discount = models.DecimalField(**MONEY)
    loyalty_points_used = models.PositiveIntegerField(default=0)
    total = models.DecimalField(**MONEY)
    payment_method = models.CharField(max_length=10, default=PAYMENT_METHOD_COD)

    # Delivery verification
    verification_code = models.CharField(max_length=6)
    verification_code_used = models.BooleanField(default=False)
    verification_code_used_at = models.DateTimeField(null=True, blank=True)

    # Delivery
    assigned_driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_orders",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    all_items_collected = models.BooleanField(default=False)
    collection_completed_at = models.DateTimeField(null=True, blank=True)
    out_for_delivery_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    delivery_notes = models.TextField(blank=True, default="")
    recipient_name = models.CharField(max_length=255, blank=True, default="")

    # Cancellation
    cancel_reason = models.TextField(blank=True, default="")
    cancelled_by = models.CharField(
        max_length=10, choices=CancelledBy.choices, blank=True, default=""
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(
                fields=["assigned_driver", "status"], name="orders_driver_status_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "idempotency_key"],
                name="orders_customer_idempotency_key_uniq",
            ),
            models.CheckConstraint(
                condition=models.Q(verification_code_used=False)
                | models.Q(status=OrderStatus.DELIVERED),
                name="orders_code_used_only_when_delivered",
            ),
            models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="orders_total_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def compute_total(self) -> Decimal:
        """``sub_total + shipping - discount - loyalty_discount``, floored at zero."""
        total = (
            self.sub_total + self.shipping_cost - self.discount - self.loyalty_discount
        )
        return max(Decimal("0.00"), total)

    @property
    def loyalty_base_amount(self) -> Decimal:
        """Amount that earns loyalty points on delivery."""
        return max(Decimal("0.00"), self.sub_total + self.shipping_cost - self.discount)

    # ------------------------------------------------------------------
    # Invoice generation
    # ------------------------------------------------------------------

    @staticmethod
    def next_invoice() -> int:
        last = Order.objects.aggregate(last=models.Max("invoice"))["last"]
        return INVOICE_START if last is None else last + 1

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.invoice is not None:
            super().save(*args, **kwargs)
            return

        # Two concurrent creations can read the same MAX(invoice); the unique
        # index rejects the loser, which retries with the next number.  Any
        # other constraint violation propagates unchanged.
        for attempt in range(INVOICE_MAX_RETRIES):
            self.invoice = self.next_invoice()
            try:
                with transaction.atomic():
                    super().save(*args, **kwargs)
                return
            except IntegrityError:
                if not Order.objects.filter(invoice=self.invoice).exists():
                    self.invoice = None
                    raise
                logger.warning(
                    "order.invoice_collision", invoice=self.invoice, attempt=attempt
                )
                self.invoice = None
        raise RuntimeError(
            f"Failed to allocate a unique invoice after {INVOICE_MAX_RETRIES} attempts"
        )

    def __str__(self) -> str:
        return f"#{self.invoice} ({self.status})"


class OrderItem(BaseModel):
    """Cart line.

    ``title`` and ``unit_price`` are **snapshots** of the product at the
    time of purchase.  ``subtotal`` is always ``quantity * unit_price``,
    recalculated on every save.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    title = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    pack_qty = models.PositiveIntegerField(default=1)
    unit_name = models.CharField(max_length=32, blank=True, default="")
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.title} x{self.quantity} ({self.subtotal})"


class ChecklistItem(BaseModel):
    """One product the driver must collect before leaving for delivery.

    The set of products is fixed when the checklist is generated; only the
    ``collected*`` and ``notes`` columns change afterwards.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="checklist",
    )
    product_id = models.UUIDField()
    title = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    collected = models.BooleanField(default=False)
    collected_at = models.DateTimeField(null=True, blank=True)
    collected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_checklist_items"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "product_id"],
                name="checklist_unique_product_per_order",
            ),
        ]

    def __str__(self) -> str:
        mark = "x" if self.collected else " "
        return f"[{mark}] {self.title} x{self.quantity}"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Audit records are immutable, hence ``BaseModel`` rather than
    ``SoftDeleteModel``.  ``user`` is ``None`` for system-driven changes.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"
