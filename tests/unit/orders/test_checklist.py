"""Unit tests for the product collection checklist.

Covers:
- One entry per cart line, generated once with the order.
- Ticking entries only while Processing.
- all_items_collected / collection_completed_at follow the entries.
- Unknown products and empty checklists.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders import checklist
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderState, ProductNotInChecklist
from modules.orders.models import ChecklistItem

pytestmark = pytest.mark.unit


@pytest.fixture()
def processing_order(place_order, advance):
    return advance(place_order(), OrderStatus.PROCESSING)


class TestGenerateChecklist:
    def test_entries_mirror_cart_lines(self, place_order, product, other_product):
        order = place_order()
        entries = {entry.product_id: entry for entry in order.checklist.all()}

        assert set(entries) == {product.id, other_product.id}
        assert entries[product.id].title == "Basmati Rice 5kg"
        assert entries[product.id].quantity == 2
        assert entries[other_product.id].quantity == 1
        assert not any(entry.collected for entry in entries.values())

    def test_generation_is_idempotent(self, place_order):
        order = place_order()
        before = ChecklistItem.objects.filter(order=order).count()

        checklist.generate_checklist(order, order.items.all())

        assert ChecklistItem.objects.filter(order=order).count() == before

    def test_start_processing_does_not_duplicate_entries(self, processing_order):
        assert processing_order.checklist.count() == 2


class TestSetItemCollected:
    def test_rejected_unless_processing(self, place_order, product):
        order = place_order()
        with pytest.raises(InvalidOrderState):
            checklist.set_item_collected(order, product.id, True)

    def test_unknown_product_rejected(self, processing_order):
        with pytest.raises(ProductNotInChecklist):
            checklist.set_item_collected(processing_order, uuid4(), True)

    def test_malformed_product_id_rejected(self, processing_order):
        with pytest.raises(ProductNotInChecklist):
            checklist.set_item_collected(processing_order, "not-a-uuid", True)

    def test_partial_collection_keeps_flag_false(
        self, processing_order, product, driver_user
    ):
        entry = checklist.set_item_collected(
            processing_order, product.id, True, actor=driver_user, notes="top shelf"
        )

        assert entry.collected is True
        assert entry.collected_at is not None
        assert entry.collected_by == driver_user
        assert entry.notes == "top shelf"
        assert processing_order.all_items_collected is False
        assert processing_order.collection_completed_at is None

    def test_all_collected_sets_flag_and_timestamp(
        self, processing_order, product, other_product
    ):
        checklist.set_item_collected(processing_order, product.id, True)
        checklist.set_item_collected(processing_order, other_product.id, True)

        assert processing_order.all_items_collected is True
        assert processing_order.collection_completed_at is not None

    def test_untick_clears_flag_and_timestamp(
        self, processing_order, product, other_product
    ):
        checklist.set_item_collected(processing_order, product.id, True)
        checklist.set_item_collected(processing_order, other_product.id, True)

        entry = checklist.set_item_collected(processing_order, product.id, False)

        assert entry.collected_at is None
        assert entry.collected_by is None
        assert processing_order.all_items_collected is False
        assert processing_order.collection_completed_at is None

    def test_notes_kept_when_not_given(self, processing_order, product):
        checklist.set_item_collected(processing_order, product.id, True, notes="dented")
        entry = checklist.set_item_collected(processing_order, product.id, False)
        assert entry.notes == "dented"


class TestCollectionState:
    def test_empty_checklist_is_never_collected(self, processing_order):
        processing_order.checklist.all().delete()
        processing_order.all_items_collected = True

        changed = checklist.refresh_collection_state(processing_order)

        assert changed is True
        assert processing_order.all_items_collected is False

    def test_refresh_reports_no_change(self, processing_order):
        assert checklist.refresh_collection_state(processing_order) is False

    def test_uncollected_titles(self, processing_order, product):
        checklist.set_item_collected(processing_order, product.id, True)
        assert checklist.uncollected_titles(processing_order) == ["Olive Oil 1L"]
