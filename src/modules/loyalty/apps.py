from django.apps import AppConfig


class LoyaltyAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.loyalty"
    label = "loyalty"
