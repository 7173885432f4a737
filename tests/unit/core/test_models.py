"""Unit tests for BaseModel timestamps and soft delete.

Exercised through the concrete catalogue and customer models.
"""

from __future__ import annotations

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.orders.dtos import CreateOrderItemDTO
from modules.products.exceptions import ProductNotFound
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


class TestBaseModel:
    def test_uuid7_primary_key(self, product):
        assert product.id.version == 7

    def test_update_fields_refreshes_updated_at(self, product):
        with freeze_time("2025-06-15 12:00:00"):
            product.stock_quantity = 5
            product.save(update_fields=["stock_quantity"])
            expected = timezone.now()

        product.refresh_from_db()
        assert product.updated_at == expected
        assert product.stock_quantity == 5


class TestSoftDelete:
    @freeze_time("2025-06-15 12:00:00")
    def test_delete_stamps_deleted_at(self, product):
        product.delete()
        product.refresh_from_db()
        assert product.is_deleted
        assert product.deleted_at == timezone.now()

    def test_delete_twice_is_noop(self, product):
        assert product.delete() == (1, {"products.Product": 1})
        assert product.delete() == (0, {})

    def test_alive_excludes_deleted(self, product, other_product):
        other_product.delete()
        assert list(Product.objects.alive()) == [product]
        assert Product.objects.count() == 2

    def test_bulk_delete(self, product, other_product):
        count, _ = Product.objects.all().delete()
        assert count == 2
        assert not Product.objects.alive().exists()

    def test_repositories_hide_deleted_rows(self, customer, product):
        assert CustomerDjangoRepository().delete(customer.id) is True
        assert ProductDjangoRepository().delete(product.id) is True

        assert CustomerDjangoRepository().get_by_id(customer.id) is None
        assert ProductDjangoRepository().get_by_id(product.id) is None
        assert CustomerDjangoRepository().delete(customer.id) is False

    def test_deleted_product_cannot_be_ordered(self, place_order, product):
        product.delete()
        with pytest.raises(ProductNotFound):
            place_order(items=[CreateOrderItemDTO(product_id=product.id, quantity=1)])
