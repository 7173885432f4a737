"""Integration tests for the Celery configuration and scheduled tasks."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _celery_eager(settings):
    """Run tasks synchronously inside the test process."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


class TestCeleryConfig:
    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "fulfilment"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "fulfilment"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_beat_schedule(self, settings):
        tasks = {entry["task"] for entry in settings.CELERY_BEAT_SCHEDULE.values()}
        assert tasks == {"core.dispatch_outbox_events", "loyalty.expire_points"}


class TestScheduledTasks:
    def test_dispatch_outbox_events_delay(self, place_order):
        from modules.core.tasks import dispatch_outbox_events

        place_order()
        result = dispatch_outbox_events.delay()

        assert result.successful()
        assert result.result == {"published": 1, "failed": 0}

    def test_expire_points_delay(self, loyalty_service, customer):
        from modules.loyalty.tasks import expire_points

        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("120"), now=long_ago)

        result = expire_points.delay()

        assert result.successful()
        assert result.result == 1
        customer.refresh_from_db()
        assert customer.loyalty_current == 0
