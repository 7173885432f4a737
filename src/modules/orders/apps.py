from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        # Register the event classes before the outbox dispatcher rebuilds them.
        from modules.orders import events  # noqa: F401
