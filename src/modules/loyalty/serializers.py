"""Loyalty DRF serializers for API input/output."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.loyalty.models import LoyaltyTransaction

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class RedeemPointsSerializer(serializers.Serializer):
    points = serializers.IntegerField(min_value=1)


class AwardBonusSerializer(serializers.Serializer):
    points = serializers.IntegerField(min_value=1)
    description = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=255
    )


class CalculatePointsSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class LoyaltyTransactionSerializer(serializers.ModelSerializer):
    invoice = serializers.IntegerField(
        source="order.invoice", read_only=True, default=None
    )

    class Meta:
        model = LoyaltyTransaction
        fields = [
            "id",
            "type",
            "points",
            "description",
            "order_id",
            "invoice",
            "balance_after",
            "expiry_date",
            "status",
            "discount_amount",
            "created_at",
        ]
        read_only_fields = fields


class LoyaltyBalanceSerializer(serializers.Serializer):
    current = serializers.IntegerField(source="loyalty_current")
    total = serializers.IntegerField(source="loyalty_total")
    used = serializers.IntegerField(source="loyalty_used")


class PurchaseStatsSerializer(serializers.Serializer):
    total_orders = serializers.IntegerField()
    total_spent = serializers.DecimalField(max_digits=12, decimal_places=2)
    average_order_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    last_order_date = serializers.DateTimeField(allow_null=True)


class LoyaltySummarySerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(source="customer.id")
    name = serializers.CharField(source="customer.name")
    email = serializers.EmailField(source="customer.email")
    loyalty_points = LoyaltyBalanceSerializer(source="customer")
    purchase_stats = PurchaseStatsSerializer(source="customer")
    points_expiring_soon = serializers.IntegerField()
    redemption_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    recent_transactions = LoyaltyTransactionSerializer(many=True)
    config = serializers.DictField()
