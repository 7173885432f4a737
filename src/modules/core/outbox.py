"""Outbox dispatcher.

Reads dispatchable ``OutboxEvent`` rows, rebuilds the domain event and
publishes it on the in-process event bus.  Each event is handled in its
own savepoint so one failing handler only marks its own row as failed.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.bus import IEventBus
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class DispatchReport:
    published: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.published + self.failed


class OutboxDispatcher:
    """Publish pending outbox rows to an event bus."""

    def __init__(self, bus: IEventBus, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self._bus = bus
        self._batch_size = batch_size

    def dispatch_pending(self) -> DispatchReport:
        report = DispatchReport()
        with transaction.atomic():
            rows = list(
                OutboxEvent.objects.ready_for_dispatch().select_for_update(
                    skip_locked=True
                )[: self._batch_size]
            )
            for row in rows:
                if self._dispatch_one(row):
                    report.published += 1
                else:
                    report.failed += 1

        logger.info(
            "outbox.dispatch_completed",
            published=report.published,
            failed=report.failed,
        )
        return report

    def _dispatch_one(self, row: OutboxEvent) -> bool:
        log = logger.bind(
            outbox_id=str(row.id),
            event_type=row.event_type,
            aggregate_id=row.aggregate_id,
        )
        try:
            with transaction.atomic():
                event = DomainEvent.from_payload(row.event_type, row.payload)
                self._bus.publish(event)
        except Exception as exc:
            log.exception("outbox.dispatch_failed", retry_count=row.retry_count + 1)
            row.mark_as_failed(f"{type(exc).__name__}: {exc}")
            return False

        row.mark_as_published()
        log.info("outbox.event_published")
        return True
