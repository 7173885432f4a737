"""Customer notifications (in-app inbox)."""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.notifications.constants import NotificationStatus, NotificationType


class Notification(BaseModel):
    """A message shown in the customer's inbox.

    ``message_data`` carries the values interpolated by the client, e.g.
    the invoice number and, for the ``Received`` notification only, the
    delivery verification code.
    """

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    type = models.CharField(
        max_length=20, choices=NotificationType.choices, default=NotificationType.ORDER
    )
    title_key = models.CharField(max_length=64)
    message_key = models.CharField(max_length=64)
    message_data = models.JSONField(default=dict, blank=True)
    action_url = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=10,
        choices=NotificationStatus.choices,
        default=NotificationStatus.UNREAD,
    )
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["customer", "status", "-created_at"],
                name="notifications_inbox_idx",
            ),
            models.Index(fields=["order", "title_key"], name="notifications_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title_key} ({self.status})"
