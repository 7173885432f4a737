"""Order API views.

Exposes the ``OrderService`` via HTTP using a DRF ViewSet.  Views check
who may act on an order, turn the request into a DTO and delegate; domain
errors propagate to ``modules.core.exception_handler``.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.customers.exceptions import CustomerNotFound
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.loyalty.services import LoyaltyService
from modules.orders import permissions
from modules.orders.compensation import CancellationCompensator
from modules.orders.constants import CancelledBy
from modules.orders.dtos import (
    CancelDTO,
    CollectItemDTO,
    CreateOrderDTO,
    CreateOrderItemDTO,
    DeliverDTO,
    TransitionDTO,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelSerializer,
    CollectItemSerializer,
    CreateOrderSerializer,
    DeliverSerializer,
    NotesSerializer,
    OrderListSerializer,
    OrderSerializer,
    TransitionSerializer,
)
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import StockService


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.none()
    filterset_class = OrderFilter
    search_fields = ["=invoice", "customer__name"]
    ordering_fields = ["created_at", "total", "status", "invoice"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._orders = OrderDjangoRepository()
        self._customers = CustomerDjangoRepository()
        products = ProductDjangoRepository()
        stock = StockService(products)
        loyalty = LoyaltyService(customer_repository=self._customers)
        self._service = OrderService(
            order_repository=self._orders,
            customer_repository=self._customers,
            product_repository=products,
            loyalty_service=loyalty,
            stock_service=stock,
            compensator=CancellationCompensator(stock, loyalty),
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scopes per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "assigned"}:
            throttle_scope = "order_listing"
        elif self.action == "deliver":
            throttle_scope = "order_delivery"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        """Orders visible to the requesting user."""
        user = self.request.user
        queryset = self._orders.list()
        if permissions.is_admin(user):
            return queryset
        if permissions.is_driver(user):
            return queryset.filter(assigned_driver_id=user.pk)
        return queryset.filter(customer__user_id=user.pk)

    def _load(self, pk: str | None) -> Order:
        return self._service.get_order(str(pk))

    def _render(self, request: Request, order: Order, **kwargs) -> Response:
        context = {
            "request": request,
            "include_verification_code": permissions.is_owner(request.user, order),
        }
        return Response(OrderSerializer(order, context=context).data, **kwargs)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        """
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if permissions.is_admin(request.user) and data.get("customer_id"):
            customer_id = data["customer_id"]
        else:
            customer = self._customers.get_by_user(request.user.pk)
            if not customer:
                raise CustomerNotFound("No customer account is linked to this user.")
            customer_id = customer.id

        dto = CreateOrderDTO(
            customer_id=customer_id,
            items=[
                CreateOrderItemDTO(
                    product_id=item["product_id"], quantity=item["quantity"]
                )
                for item in data["items"]
            ],
            shipping_cost=data["shipping_cost"],
            discount=data["discount"],
            loyalty_points_used=data["loyalty_points_used"],
            payment_method=data["payment_method"],
            notes=data.get("notes", ""),
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        order = self._service.create_order(dto, actor=request.user)
        return self._render(request, order, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, customer, driver, invoice, date and total
        ranges) is handled by ``OrderFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._load(pk)
        permissions.ensure_can_view(request.user, order)
        return self._render(request, order)

    @action(detail=False, methods=["get"], permission_classes=[permissions.IsDriver])
    def assigned(self, request: Request) -> Response:
        """GET /api/v1/orders/assigned/?all=true

        Orders assigned to the requesting driver; unfinished ones only
        unless ``all`` is given.
        """
        active_only = request.query_params.get("all", "").lower() not in {"1", "true"}
        orders = self._service.list_driver_orders(request.user, active_only=active_only)
        return Response(OrderListSerializer(orders, many=True).data)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ (admin)

        Generic status change routed to the matching transition.
        """
        permissions.ensure_admin(request.user)
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = TransitionDTO(**serializer.validated_data, cancelled_by=CancelledBy.ADMIN)
        order = self._service.update_status(self._load(pk).id, dto, actor=request.user)
        return self._render(request, order)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/ (customer or admin)"""
        order = self._load(pk)
        permissions.ensure_can_cancel(request.user, order)
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = CancelDTO(
            reason=serializer.validated_data["reason"],
            cancelled_by=(
                CancelledBy.ADMIN
                if permissions.is_admin(request.user)
                else CancelledBy.CUSTOMER
            ),
        )
        order = self._service.cancel_order(
            order.id, dto.reason, dto.cancelled_by, actor=request.user
        )
        return self._render(request, order)

    @action(detail=True, methods=["post"])
    def collect(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/collect/ (assigned driver)"""
        order = self._load(pk)
        permissions.ensure_can_deliver(request.user, order)
        serializer = CollectItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = CollectItemDTO(**serializer.validated_data)
        order = self._service.set_item_collected(
            order.id, dto.product_id, dto.collected, actor=request.user, notes=dto.notes
        )
        return self._render(request, order)

    @action(detail=True, methods=["post"], url_path="checklist/regenerate")
    def regenerate_checklist(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/checklist/regenerate/"""
        order = self._load(pk)
        permissions.ensure_can_deliver(request.user, order)
        order = self._service.regenerate_checklist(order.id, actor=request.user)
        return self._render(request, order)

    @action(detail=True, methods=["post"], url_path="out-for-delivery")
    def out_for_delivery(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/out-for-delivery/"""
        order = self._load(pk)
        permissions.ensure_can_deliver(request.user, order)
        serializer = NotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.mark_out_for_delivery(
            order.id, actor=request.user, notes=serializer.validated_data["notes"]
        )
        return self._render(request, order)

    @action(detail=True, methods=["post"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/deliver/"""
        order = self._load(pk)
        permissions.ensure_can_deliver(request.user, order)
        serializer = DeliverSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = DeliverDTO(**serializer.validated_data)
        order = self._service.mark_delivered(
            order.id,
            dto.verification_code,
            actor=request.user,
            notes=dto.notes,
            recipient_name=dto.recipient_name,
        )
        return self._render(request, order)
