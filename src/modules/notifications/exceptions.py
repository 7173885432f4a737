"""Notification domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFoundError


class NotificationNotFound(NotFoundError):
    code = "notification_not_found"
    default_message = "Notification not found."
