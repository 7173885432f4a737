"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.models import ChecklistItem, Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single cart line in an order creation request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    ``customer_id`` is only read from staff requests; customers always
    order for themselves.
    """

    customer_id = serializers.UUIDField(required=False)
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    shipping_cost = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, default="0.00"
    )
    discount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, default="0.00"
    )
    loyalty_points_used = serializers.IntegerField(
        min_value=0, required=False, default=0
    )
    payment_method = serializers.CharField(required=False, default="COD")
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    driver_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    verification_code = serializers.CharField(
        required=False, allow_null=True, default=None
    )
    recipient_name = serializers.CharField(required=False, default="", allow_blank=True)
    cancel_reason = serializers.CharField(required=False, default="", allow_blank=True)


class CollectItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    collected = serializers.BooleanField(required=False, default=True)
    notes = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, default=None
    )


class DeliverSerializer(serializers.Serializer):
    verification_code = serializers.CharField()
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    recipient_name = serializers.CharField(required=False, default="", allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField()


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for cart lines (title and price are snapshots)."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "title",
            "quantity",
            "unit_price",
            "pack_qty",
            "unit_name",
            "subtotal",
        ]
        read_only_fields = fields


class ChecklistItemSerializer(serializers.ModelSerializer):
    collected_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = ChecklistItem
        fields = [
            "product_id",
            "title",
            "quantity",
            "collected",
            "collected_at",
            "collected_by",
            "notes",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "user_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested lines, checklist and history.

    ``verification_code`` is only rendered when the view passes
    ``include_verification_code=True`` in the context (the order's owner).
    """

    items = OrderItemSerializer(many=True, read_only=True)
    checklist = ChecklistItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "invoice",
            "customer_id",
            "status",
            "payment_method",
            "sub_total",
            "shipping_cost",
            "discount",
            "loyalty_discount",
            "loyalty_points_used",
            "total",
            "verification_code",
            "verification_code_used",
            "assigned_driver_id",
            "assigned_at",
            "all_items_collected",
            "collection_completed_at",
            "out_for_delivery_at",
            "delivered_at",
            "delivery_notes",
            "recipient_name",
            "cancel_reason",
            "cancelled_by",
            "cancelled_at",
            "notes",
            "created_at",
            "updated_at",
            "items",
            "checklist",
            "status_history",
        ]
        read_only_fields = fields

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if not self.context.get("include_verification_code"):
            data.pop("verification_code", None)
        return data


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "invoice",
            "customer_id",
            "status",
            "total",
            "assigned_driver_id",
            "all_items_collected",
            "created_at",
        ]
        read_only_fields = fields


