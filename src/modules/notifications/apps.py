from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.notifications"
    label = "notifications"

    def ready(self) -> None:
        from modules.notifications.handlers import order_notification_handler
        from modules.orders.events import OrderCreated, OrderStatusChanged
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_notification_handler)
        event_bus.subscribe(OrderStatusChanged, order_notification_handler)
