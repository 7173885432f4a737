"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` so the Order
aggregate and its outbox events are persisted together.

Concurrency control on transitions uses ``select_for_update()`` on the
order row; concurrent transitions on one order serialise on that lock.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.models import OutboxEvent
from modules.orders.constants import TERMINAL_STATES
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"
PREFETCH = ("items", "checklist", "status_history")


def _with_relations(queryset):
    return queryset.select_related("customer", "assigned_driver").prefetch_related(
        *PREFETCH
    )


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its cart lines atomically.

        Money columns other than ``sub_total`` are taken from ``data``;
        ``sub_total`` and ``total`` are computed from the lines.
        """
        items = data.pop("items")
        order = Order(**data)
        order.save()

        for item_data in items:
            item = OrderItem(order=order, **item_data)
            item.save()
            order.sub_total += item.subtotal

        order.total = order.compute_total()
        order.save(update_fields=["sub_total", "total", "updated_at"])

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            invoice=order.invoice,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve a live order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return _with_relations(Order.objects.alive()).filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Only the order row is locked (``of=("self",)``); related rows are
        loaded by the prefetch queries.
        """
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .alive()
                .select_related("customer")
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None):
        """List live orders; returns a QuerySet so views can filter and paginate."""
        queryset = _with_relations(Order.objects.alive())
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def list_for_driver(self, driver_id: Any, active_only: bool = True) -> List[Order]:
        queryset = self.list({"assigned_driver_id": driver_id})
        if active_only:
            queryset = queryset.exclude(status__in=TERMINAL_STATES)
        return list(queryset)

    def get_by_idempotency_key(self, customer_id: Any, key: str) -> Optional[Order]:
        try:
            return (
                _with_relations(Order.objects.all())
                .filter(customer_id=customer_id, idempotency_key=key)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and turn its pending domain events into outbox rows."""
        entity.save()

        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic=OUTBOX_TOPIC,
            )
        entity.clear_domain_events()

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete an order by ID."""
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.soft_deleted", order_id=str(id))
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
            user=user if getattr(user, "pk", None) else None,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history
