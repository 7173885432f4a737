"""Unit tests for the transactional outbox.

Covers:
- OutboxEvent state transitions and ready_for_dispatch().
- OutboxDispatcher publishing, failure bookkeeping and retry limit.
- The Celery task wrapper.
"""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest

from modules.core.models import OUTBOX_MAX_RETRIES, EventStatus, OutboxEvent
from modules.core.outbox import OutboxDispatcher
from modules.orders.events import OrderStatusChanged
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def _status_changed_payload(**overrides) -> dict:
    event = OrderStatusChanged(
        aggregate_id=uuid.uuid4(),
        customer_id=str(uuid.uuid4()),
        invoice=10000,
        old_status="Received",
        new_status="Pending",
    )
    return {**event.to_payload(), **overrides}


def _make_event(**overrides) -> OutboxEvent:
    payload = overrides.pop("payload", None) or _status_changed_payload()
    defaults = {
        "event_type": "OrderStatusChanged",
        "payload": payload,
        "aggregate_id": payload["aggregate_id"],
        "topic": "orders",
    }
    defaults.update(overrides)
    return OutboxEvent.objects.create(**defaults)


class TestOutboxEventModel:
    def test_defaults(self):
        event = _make_event()
        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.retry_count == 0
        assert event.processed_at is None
        assert event.id.version == 7

    def test_mark_as_published(self):
        event = _make_event()
        event.mark_as_failed("boom")
        event.mark_as_published()
        event.refresh_from_db()
        assert event.status == EventStatus.PUBLISHED
        assert event.processed_at is not None
        assert event.error_message is None

    def test_mark_as_failed_increments_retry(self):
        event = _make_event()
        event.mark_as_failed("Error 1")
        event.mark_as_failed("Error 2")
        event.refresh_from_db()
        assert event.status == EventStatus.FAILED
        assert event.retry_count == 2
        assert event.error_message == "Error 2"

    def test_ready_for_dispatch(self):
        pending = _make_event()
        retryable = _make_event()
        retryable.mark_as_failed("once")
        exhausted = _make_event(
            status=EventStatus.FAILED, retry_count=OUTBOX_MAX_RETRIES
        )
        published = _make_event()
        published.mark_as_published()

        ready = set(OutboxEvent.objects.ready_for_dispatch().values_list("id", flat=True))

        assert ready == {pending.id, retryable.id}
        assert exhausted.retries_exhausted

    def test_str_representation(self):
        event = _make_event(aggregate_id="order-456")
        assert str(event) == "OrderStatusChanged [PENDING] (order-456)"


class TestOutboxDispatcher:
    def test_publishes_rebuilt_event(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderStatusChanged, handler)
        row = _make_event()

        report = OutboxDispatcher(bus).dispatch_pending()

        assert report.published == 1
        assert report.failed == 0
        event = handler.handle.call_args.args[0]
        assert isinstance(event, OrderStatusChanged)
        assert str(event.aggregate_id) == row.aggregate_id
        assert event.new_status == "Pending"
        row.refresh_from_db()
        assert row.status == EventStatus.PUBLISHED

    def test_handler_failure_marks_row_failed(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        handler.handle.side_effect = RuntimeError("smtp down")
        bus.subscribe(OrderStatusChanged, handler)
        row = _make_event()

        report = OutboxDispatcher(bus).dispatch_pending()

        assert report.failed == 1
        row.refresh_from_db()
        assert row.status == EventStatus.FAILED
        assert row.retry_count == 1
        assert "smtp down" in row.error_message

    def test_unknown_event_type_fails_only_its_row(self):
        bus = InMemoryEventBus()
        bad = _make_event(event_type="NoSuchEvent")
        good = _make_event()

        report = OutboxDispatcher(bus).dispatch_pending()

        assert report.published == 1
        assert report.failed == 1
        bad.refresh_from_db()
        good.refresh_from_db()
        assert bad.status == EventStatus.FAILED
        assert good.status == EventStatus.PUBLISHED

    def test_stops_retrying_after_limit(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        handler.handle.side_effect = RuntimeError("still down")
        bus.subscribe(OrderStatusChanged, handler)
        row = _make_event()

        for _ in range(OUTBOX_MAX_RETRIES + 2):
            OutboxDispatcher(bus).dispatch_pending()

        row.refresh_from_db()
        assert row.retry_count == OUTBOX_MAX_RETRIES
        assert handler.handle.call_count == OUTBOX_MAX_RETRIES

    def test_batch_size(self):
        bus = InMemoryEventBus()
        for _ in range(3):
            _make_event()

        report = OutboxDispatcher(bus, batch_size=2).dispatch_pending()

        assert report.processed == 2
        assert OutboxEvent.objects.filter(status=EventStatus.PENDING).count() == 1

    def test_task_dispatches(self, place_order):
        from modules.core.tasks import dispatch_outbox_events

        place_order()
        result = dispatch_outbox_events()
        assert result == {"published": 1, "failed": 0}
