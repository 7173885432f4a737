"""Event handlers turning order events into customer notifications."""

from __future__ import annotations

from typing import Union

import structlog

from modules.notifications.services import NotificationService
from modules.orders.constants import OrderStatus
from modules.orders.events import OrderCreated, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderNotificationHandler(IEventHandler[Union[OrderCreated, OrderStatusChanged]]):
    """Notifies the customer of a new order or a status change.

    Exceptions propagate to the outbox dispatcher, which retries the event.
    """

    def __init__(self, service: NotificationService | None = None) -> None:
        self._service = service or NotificationService()

    def handle(self, event: Union[OrderCreated, OrderStatusChanged]) -> None:
        if isinstance(event, OrderCreated):
            new_status, code = OrderStatus.RECEIVED, event.verification_code
        else:
            new_status, code = event.new_status, None
        logger.debug(
            "notification.handling_event",
            event_name=event.event_name,
            order_id=str(event.aggregate_id),
        )
        self._service.notify_customer(
            customer_id=event.customer_id,
            order_id=event.aggregate_id,
            new_status=new_status,
            invoice=event.invoice,
            verification_code=code,
        )


order_notification_handler = OrderNotificationHandler()
