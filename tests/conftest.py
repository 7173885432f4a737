from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache

from rest_framework.test import APIClient

from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.loyalty.services import LoyaltyService
from modules.orders.compensation import CancellationCompensator
from modules.orders.constants import DRIVERS_GROUP, OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import StockService

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="ops-admin", password="testpass123", is_staff=True
    )


@pytest.fixture()
def driver_user():
    user = User.objects.create_user(username="driver-one", password="testpass123")
    group, _ = Group.objects.get_or_create(name=DRIVERS_GROUP)
    user.groups.add(group)
    return user


@pytest.fixture()
def customer_user():
    return User.objects.create_user(username="maria", password="testpass123")


@pytest.fixture()
def customer(customer_user):
    return Customer.objects.create(
        user=customer_user,
        name="Maria Test",
        email="maria@example.com",
        phone="+15550100",
        address="12 Market Street",
    )


@pytest.fixture()
def client_for():
    """Build an APIClient force-authenticated as ``user``."""

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    return Product.objects.create(
        sku="RICE-5KG",
        name="Basmati Rice 5kg",
        price=Decimal("100.00"),
        stock_quantity=40,
    )


@pytest.fixture()
def other_product():
    return Product.objects.create(
        sku="OIL-1L",
        name="Olive Oil 1L",
        price=Decimal("50.00"),
        stock_quantity=10,
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def loyalty_service():
    return LoyaltyService(customer_repository=CustomerDjangoRepository())


@pytest.fixture()
def stock_service():
    return StockService(ProductDjangoRepository())


@pytest.fixture()
def order_service(loyalty_service, stock_service):
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        loyalty_service=loyalty_service,
        stock_service=stock_service,
        compensator=CancellationCompensator(stock_service, loyalty_service),
    )


@pytest.fixture()
def place_order(order_service, customer, product, other_product):
    """Place a 250.00 order: 2 x 100.00 rice and 1 x 50.00 oil."""

    def _place(**overrides):
        dto = CreateOrderDTO(
            customer_id=overrides.pop("customer_id", customer.id),
            items=overrides.pop(
                "items",
                [
                    CreateOrderItemDTO(product_id=product.id, quantity=2),
                    CreateOrderItemDTO(product_id=other_product.id, quantity=1),
                ],
            ),
            **overrides,
        )
        return order_service.create_order(dto)

    return _place


@pytest.fixture()
def advance(order_service, driver_user):
    """Walk an order forward along the lifecycle up to ``target``."""

    def _advance(order, target):
        if order.status == target:
            return order
        if order.status == OrderStatus.RECEIVED:
            order = order_service.confirm_order(order.id)
        if order.status == target:
            return order
        if order.status == OrderStatus.PENDING:
            order = order_service.start_processing(order.id, driver_user.pk)
        if order.status == target:
            return order
        if order.status == OrderStatus.PROCESSING:
            for entry in list(order.checklist.all()):
                order = order_service.set_item_collected(
                    order.id, entry.product_id, True, actor=driver_user
                )
            order = order_service.mark_out_for_delivery(order.id)
        if order.status == target:
            return order
        return order_service.mark_delivered(order.id, order.verification_code)

    return _advance
