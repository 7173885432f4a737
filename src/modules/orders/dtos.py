"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: a single cart line in a creation request.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``TransitionDTO``: input for the generic status endpoint.
- ``CollectItemDTO``: checklist toggle.
- ``DeliverDTO``: delivery confirmation with the customer's code.
- ``CancelDTO``: cancellation request.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import PAYMENT_METHOD_COD, CancelledBy, OrderStatus

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single cart line.

    The client sends ``product_id`` and ``quantity``; title and unit price
    are snapshotted from the catalogue by the Service Layer.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one line, without duplicate products.
    - Money inputs are non-negative.
    - ``payment_method`` is cash on delivery.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    items: List[CreateOrderItemDTO]
    shipping_cost: Decimal = Field(default=Decimal("0.00"), ge=0)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0)
    loyalty_points_used: int = Field(default=0, ge=0)
    payment_method: str = PAYMENT_METHOD_COD
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("payment_method")
    @classmethod
    def payment_must_be_cod(cls, v: str) -> str:
        if v.strip().upper() != PAYMENT_METHOD_COD:
            raise ValueError("Only cash on delivery (COD) is supported.")
        return PAYMENT_METHOD_COD

    @model_validator(mode="after")
    def no_duplicate_products(self):
        """Prevent duplicate product IDs in the same order."""
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self


class TransitionDTO(BaseModel):
    """Generic status change routed by ``OrderService.update_status``.

    Each target status needs its own fields: ``driver_id`` for
    ``Processing``, ``verification_code`` for ``Delivered`` and
    ``cancel_reason`` for ``Cancel``.
    """

    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    notes: str = ""
    driver_id: Optional[int] = None
    verification_code: Optional[str] = None
    recipient_name: str = ""
    cancel_reason: str = ""
    cancelled_by: CancelledBy = CancelledBy.ADMIN

    def missing_requirement(self) -> Optional[str]:
        """Describe the field the target status needs but the request lacks.

        Checked by the service only after the transition itself is known to
        be legal, so an illegal edge always reports a conflict first.
        """
        if self.status == OrderStatus.PROCESSING and self.driver_id is None:
            return "driver_id is required to start processing."
        if self.status == OrderStatus.DELIVERED and not self.verification_code:
            return "verification_code is required to deliver."
        if self.status == OrderStatus.CANCELLED and not self.cancel_reason.strip():
            return "cancel_reason is required to cancel."
        return None


class CollectItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    collected: bool = True
    notes: Optional[str] = None


class DeliverDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    verification_code: str
    notes: str = ""
    recipient_name: str = ""


class CancelDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    cancelled_by: CancelledBy

    @field_validator("reason")
    @classmethod
    def reason_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A cancellation reason is required.")
        return v.strip()
