"""Loyalty URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.loyalty.views import LoyaltyViewSet

router = DefaultRouter(trailing_slash=True)
router.register("loyalty", LoyaltyViewSet, basename="loyalty")

urlpatterns = router.urls
