"""Notification service layer.

Stores in-app notifications for customers.  Called from the outbox
dispatcher through ``OrderNotificationHandler``: an exception raised here
marks the outbox row as failed and the event is retried later, so
``notify_customer`` is idempotent per order and status.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from modules.notifications.constants import (
    ORDER_STATUS_KEYS,
    PURGE_VERIFICATION_STATUSES,
    VERIFICATION_CODE_TITLE_KEY,
    NotificationStatus,
    NotificationType,
)
from modules.notifications.exceptions import NotificationNotFound
from modules.notifications.models import Notification

logger = structlog.get_logger(__name__)


class NotificationService:
    """Application service for customer notifications."""

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def notify_customer(
        self,
        customer_id: Any,
        order_id: Any,
        new_status: str,
        invoice: int,
        verification_code: Optional[str] = None,
    ) -> Optional[Notification]:
        """Store the notification matching an order's new status.

        Returns ``None`` for statuses that have no notification.  Reaching
        ``Delivered`` or ``Cancel`` also purges the order's verification
        code notification.
        """
        keys = ORDER_STATUS_KEYS.get(new_status)
        log = logger.bind(
            customer_id=str(customer_id), order_id=str(order_id), status=new_status
        )
        if keys is None:
            log.info("notification.skipped_unknown_status")
            return None

        title_key, message_key = keys
        notification, created = Notification.objects.get_or_create(
            customer_id=customer_id,
            order_id=order_id,
            title_key=title_key,
            defaults={
                "type": NotificationType.ORDER,
                "message_key": message_key,
                "message_data": {
                    "invoice": invoice,
                    "verification_code": verification_code,
                },
                "action_url": f"/order/{invoice}",
            },
        )

        if new_status in PURGE_VERIFICATION_STATUSES:
            self.purge_verification_notification(order_id)

        log.info(
            "notification.created" if created else "notification.duplicate",
            title_key=title_key,
        )
        return notification

    def purge_verification_notification(self, order_id: Any) -> int:
        """Delete the notification that disclosed the order's verification code."""
        deleted, _ = Notification.objects.filter(
            order_id=order_id, title_key=VERIFICATION_CODE_TITLE_KEY
        ).delete()
        if deleted:
            logger.info(
                "notification.verification_purged", order_id=str(order_id), count=deleted
            )
        return deleted

    def mark_as_read(self, notification_id: Any, customer_id: UUID) -> Notification:
        """Mark one of the customer's notifications as read.

        Raises:
            NotificationNotFound: unknown id or not owned by the customer.
        """
        try:
            notification = (
                self.list_for_customer(customer_id).filter(id=notification_id).first()
            )
        except (ValueError, ValidationError):
            notification = None
        if not notification:
            raise NotificationNotFound()
        if notification.status != NotificationStatus.READ:
            notification.status = NotificationStatus.READ
            notification.read_at = timezone.now()
            notification.save(update_fields=["status", "read_at", "updated_at"])
        return notification

    def mark_all_as_read(self, customer_id: UUID) -> int:
        now = timezone.now()
        return self.list_for_customer(customer_id).filter(
            status=NotificationStatus.UNREAD
        ).update(status=NotificationStatus.READ, read_at=now, updated_at=now)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_customer(self, customer_id: UUID) -> QuerySet:
        return Notification.objects.filter(customer_id=customer_id).order_by(
            "-created_at", "-id"
        )

    def unread_count(self, customer_id: UUID) -> int:
        return self.list_for_customer(customer_id).filter(
            status=NotificationStatus.UNREAD
        ).count()
