"""Unit tests for StockService."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.products.models import Product

pytestmark = pytest.mark.unit


def _line(product, quantity, pack_qty=1):
    return SimpleNamespace(product_id=product.id, quantity=quantity, pack_qty=pack_qty)


class TestAdjustStock:
    def test_decrements_units(self, stock_service, product):
        stock_service.adjust_stock([_line(product, 3)])
        product.refresh_from_db()
        assert product.stock_quantity == 37

    def test_pack_quantity_multiplies_units(self, stock_service, product):
        stock_service.adjust_stock([_line(product, 2, pack_qty=6)])
        product.refresh_from_db()
        assert product.stock_quantity == 28

    def test_clamped_at_zero(self, stock_service, other_product):
        stock_service.adjust_stock([_line(other_product, 25)])
        other_product.refresh_from_db()
        assert other_product.stock_quantity == 0

    def test_missing_product_skipped(self, stock_service, product):
        ghost = SimpleNamespace(product_id=uuid4(), quantity=1, pack_qty=1)
        stock_service.adjust_stock([ghost, _line(product, 1)])
        product.refresh_from_db()
        assert product.stock_quantity == 39

    def test_delivery_adjusts_stock(self, place_order, advance, product, other_product):
        advance(place_order(), OrderStatus.DELIVERED)
        assert Product.objects.get(id=product.id).stock_quantity == 38
        assert Product.objects.get(id=other_product.id).stock_quantity == 9


class TestRestoreStock:
    def test_restores_units(self, stock_service, product):
        stock_service.restore_stock([_line(product, 2, pack_qty=3)])
        product.refresh_from_db()
        assert product.stock_quantity == 46

    def test_missing_product_ignored(self, stock_service):
        ghost = SimpleNamespace(product_id=uuid4(), quantity=1, pack_qty=1)
        stock_service.restore_stock([ghost])


class TestIncrementSales:
    def test_counts_ordered_quantity(self, stock_service, product):
        stock_service.increment_sales([_line(product, 4, pack_qty=6)])
        product.refresh_from_db()
        assert product.sales == 4
