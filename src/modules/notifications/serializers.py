"""Notification DRF serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "order_id",
            "type",
            "title_key",
            "message_key",
            "message_data",
            "action_url",
            "status",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields
