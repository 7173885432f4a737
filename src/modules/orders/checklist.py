"""Product collection checklist.

The driver ticks off every cart line while picking the order.  The order
can only leave for delivery once ``all_items_collected`` is true.

Rules:
- One entry per cart line, generated once; the product set never changes.
- Only ``Processing`` orders accept checklist mutations.
- ``all_items_collected`` is the AND over the entries and is false for an
  empty checklist.  ``collection_completed_at`` is stamped when the flag
  turns true and cleared when it turns false again.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.utils import timezone

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderState, ProductNotInChecklist
from modules.orders.models import ChecklistItem

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem

logger = structlog.get_logger(__name__)


def generate_checklist(order: Order, items: Iterable[OrderItem]) -> List[ChecklistItem]:
    """Create the checklist entries for ``order`` from its cart lines.

    Does nothing and returns the existing entries if the order already
    has a checklist.
    """
    existing = list(order.checklist.all())
    if existing:
        return existing

    entries = ChecklistItem.objects.bulk_create(
        [
            ChecklistItem(
                order=order,
                product_id=item.product_id,
                title=item.title,
                quantity=item.quantity,
            )
            for item in items
        ]
    )
    logger.info("order.checklist_generated", order_id=str(order.id), count=len(entries))
    return entries


def set_item_collected(
    order: Order,
    product_id: Any,
    collected: bool,
    actor: Any = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ChecklistItem:
    """Tick (or untick) the entry of ``product_id`` and refresh the order flags.

    The caller persists ``order``; the entry itself is saved here.

    Raises:
        InvalidOrderState: the order is not ``Processing``.
        ProductNotInChecklist: no entry for ``product_id``.
    """
    if order.status != OrderStatus.PROCESSING:
        raise InvalidOrderState(
            f"Checklist can only change while Processing (order is {order.status})."
        )

    now = now or timezone.now()
    try:
        entry = order.checklist.filter(product_id=product_id).first()
    except (ValueError, ValidationError):
        entry = None
    if entry is None:
        raise ProductNotInChecklist(f"Product {product_id} is not in the checklist.")

    entry.collected = collected
    if collected:
        entry.collected_at = now
        entry.collected_by = actor if getattr(actor, "pk", None) else None
    else:
        entry.collected_at = None
        entry.collected_by = None
    if notes is not None:
        entry.notes = notes
    entry.save()

    refresh_collection_state(order, now=now)
    return entry


def refresh_collection_state(order: Order, now: Optional[datetime] = None) -> bool:
    """Recompute ``all_items_collected`` from the stored entries.

    Returns ``True`` when the flag changed.
    """
    collected = list(order.checklist.values_list("collected", flat=True))
    all_collected = bool(collected) and all(collected)

    if all_collected == order.all_items_collected:
        return False

    order.all_items_collected = all_collected
    order.collection_completed_at = (now or timezone.now()) if all_collected else None
    logger.info(
        "order.collection_state_changed",
        order_id=str(order.id),
        all_items_collected=all_collected,
    )
    return True


def uncollected_titles(order: Order) -> List[str]:
    return list(
        order.checklist.filter(collected=False)
        .order_by("created_at", "id")
        .values_list("title", flat=True)
    )
