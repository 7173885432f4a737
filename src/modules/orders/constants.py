"""Order domain constants.

Defines status choices and valid status transitions for the order
state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    RECEIVED = "Received", "Received"
    PENDING = "Pending", "Pending"
    PROCESSING = "Processing", "Processing"
    OUT_FOR_DELIVERY = "Out for Delivery", "Out for Delivery"
    DELIVERED = "Delivered", "Delivered"
    CANCELLED = "Cancel", "Cancelled"


class CancelledBy(models.TextChoices):
    ADMIN = "admin", "Admin"
    CUSTOMER = "customer", "Customer"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.RECEIVED: {OrderStatus.PENDING, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# Cancelling from these states takes back points awarded for the order.
EARNED_POINTS_REVERSAL_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.PROCESSING}

PAYMENT_METHOD_COD = "COD"

DRIVERS_GROUP = "drivers"

INVOICE_START = 10000
INVOICE_MAX_RETRIES = 5
