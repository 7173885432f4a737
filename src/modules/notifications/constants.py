"""Notification constants.

Title and message keys are resolved to text by the client apps, which
own the translations.
"""

from django.db import models

from modules.orders.constants import OrderStatus


class NotificationStatus(models.TextChoices):
    UNREAD = "unread", "Unread"
    READ = "read", "Read"


class NotificationType(models.TextChoices):
    ORDER = "order", "Order"


VERIFICATION_CODE_TITLE_KEY = "orderVerificationCode"

# order status -> (title key, message key)
ORDER_STATUS_KEYS: dict[str, tuple[str, str]] = {
    OrderStatus.RECEIVED: (VERIFICATION_CODE_TITLE_KEY, "orderReceivedMessage"),
    OrderStatus.PENDING: ("orderConfirmed", "orderConfirmedMessage"),
    OrderStatus.PROCESSING: ("orderProcessing", "orderProcessingMessage"),
    OrderStatus.OUT_FOR_DELIVERY: ("outForDelivery", "outForDeliveryMessage"),
    OrderStatus.DELIVERED: ("orderDelivered", "orderDeliveredMessage"),
    OrderStatus.CANCELLED: ("orderCancelled", "orderCancelledMessage"),
}

# Reaching these statuses makes the verification code obsolete.
PURGE_VERIFICATION_STATUSES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
