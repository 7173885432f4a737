"""Celery tasks of the core module."""

import structlog
from celery import shared_task
from django.conf import settings

from modules.core.outbox import OutboxDispatcher
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.dispatch_outbox_events")
def dispatch_outbox_events():
    """Publish pending outbox events (customer notifications) on the event bus."""
    report = OutboxDispatcher(
        event_bus, batch_size=settings.OUTBOX_BATCH_SIZE
    ).dispatch_pending()
    logger.info(
        "dispatch_outbox_events.executed",
        published=report.published,
        failed=report.failed,
    )
    return {"published": report.published, "failed": report.failed}
