"""Unit tests for domain event primitives and the in-memory bus."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest

from modules.orders.events import OrderCreated, OrderStatusChanged
from shared.domain.events import DomainEvent, DomainEventMixin
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def _created(**overrides) -> OrderCreated:
    data = {
        "aggregate_id": uuid.uuid4(),
        "customer_id": str(uuid.uuid4()),
        "invoice": 10001,
        "verification_code": "482913",
    }
    data.update(overrides)
    return OrderCreated(**data)


class TestDomainEvent:
    def test_event_name_is_class_name(self):
        assert _created().event_name == "OrderCreated"

    def test_subclasses_registered(self):
        assert DomainEvent.registry["OrderCreated"] is OrderCreated
        assert DomainEvent.registry["OrderStatusChanged"] is OrderStatusChanged

    def test_payload_is_json_safe(self):
        event = _created()
        payload = event.to_payload()

        assert payload["aggregate_id"] == str(event.aggregate_id)
        assert payload["occurred_on"] == event.occurred_on.isoformat()
        assert payload["event_name"] == "OrderCreated"

    def test_rebuild_from_payload(self):
        event = _created()
        rebuilt = DomainEvent.from_payload("OrderCreated", event.to_payload())
        assert rebuilt == event

    def test_missing_optional_field_uses_default(self):
        payload = _created().to_payload()
        del payload["verification_code"]

        rebuilt = DomainEvent.from_payload("OrderCreated", payload)

        assert rebuilt.verification_code is None

    def test_status_change_carries_no_code(self):
        payload = {
            "aggregate_id": str(uuid.uuid4()),
            "customer_id": str(uuid.uuid4()),
            "invoice": 10001,
            "old_status": "Pending",
            "new_status": "Processing",
            "verification_code": "482913",
        }

        rebuilt = DomainEvent.from_payload("OrderStatusChanged", payload)

        assert rebuilt.new_status == "Processing"
        assert not hasattr(rebuilt, "verification_code")

    def test_unknown_event_name(self):
        with pytest.raises(LookupError):
            DomainEvent.from_payload("OrderTeleported", {"aggregate_id": str(uuid.uuid4())})

    def test_events_are_immutable(self):
        event = _created()
        with pytest.raises(AttributeError):
            event.invoice = 1


class TestDomainEventMixin:
    def test_collects_and_clears(self):
        class Aggregate(DomainEventMixin):
            pass

        aggregate = Aggregate()
        assert aggregate.domain_events == []

        aggregate.add_domain_event(_created())
        assert len(aggregate.domain_events) == 1

        aggregate.clear_domain_events()
        assert aggregate.domain_events == []


class TestInMemoryEventBus:
    def test_publish_reaches_only_matching_handlers(self):
        bus = InMemoryEventBus()
        created_handler = MagicMock()
        changed_handler = MagicMock()
        bus.subscribe(OrderCreated, created_handler)
        bus.subscribe(OrderStatusChanged, changed_handler)

        event = _created()
        bus.publish(event)

        created_handler.handle.assert_called_once_with(event)
        changed_handler.handle.assert_not_called()

    def test_subscribe_twice_registers_once(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderCreated, handler)
        bus.subscribe(OrderCreated, handler)
        assert bus.handlers_for(OrderCreated) == [handler]

    def test_handler_errors_propagate(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        handler.handle.side_effect = RuntimeError("boom")
        bus.subscribe(OrderCreated, handler)

        with pytest.raises(RuntimeError):
            bus.publish(_created())
