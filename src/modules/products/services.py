"""Stock service (Use Cases on the Product aggregate).

Moves ``stock_quantity`` and the ``sales`` counter in response to order
events.  Cart lines are any objects exposing ``product_id``, ``quantity``
and ``pack_qty`` (``OrderItem`` rows in practice).

Business rules enforced here:
- One ordered unit removes ``pack_qty`` items from stock.
- Stock never goes below zero; an oversell is clamped and logged.
- Unknown products are logged and skipped, the other lines still apply.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Protocol

import structlog
from django.db import transaction
from django.db.models import F

from modules.products.models import Product

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class CartLine(Protocol):
    product_id: Any
    quantity: int
    pack_qty: int


def _units(line: CartLine) -> int:
    return int(line.quantity) * max(int(line.pack_qty or 1), 1)


class StockService:
    """Application service for stock movements.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def adjust_stock(self, cart_lines: Iterable[CartLine], order: Any = None) -> None:
        """Decrement stock for every cart line of a delivered order."""
        log = logger.bind(order_id=str(order.id) if order is not None else None)

        for line in cart_lines:
            product = self._repo.get_for_update(line.product_id)
            if product is None:
                log.warning("stock.product_missing", product_id=str(line.product_id))
                continue

            units = _units(line)
            remaining = product.stock_quantity - units
            if remaining < 0:
                log.warning(
                    "stock.clamped_at_zero",
                    product_id=str(product.id),
                    available=product.stock_quantity,
                    requested=units,
                )
                remaining = 0

            product.stock_quantity = remaining
            product.save(update_fields=["stock_quantity", "updated_at"])
            log.info(
                "stock.decremented",
                product_id=str(product.id),
                units=units,
                stock_quantity=remaining,
            )

    @transaction.atomic
    def restore_stock(self, cart_lines: Iterable[CartLine]) -> None:
        """Put the units of every cart line back into stock."""
        for line in cart_lines:
            units = _units(line)
            updated = Product.objects.filter(id=line.product_id).update(
                stock_quantity=F("stock_quantity") + units
            )
            if not updated:
                logger.warning("stock.product_missing", product_id=str(line.product_id))
                continue
            logger.info("stock.restored", product_id=str(line.product_id), units=units)

    def increment_sales(self, cart_lines: Iterable[CartLine]) -> None:
        """Bump the ``sales`` counter by the ordered quantity of each line."""
        for line in cart_lines:
            Product.objects.filter(id=line.product_id).update(
                sales=F("sales") + int(line.quantity)
            )
