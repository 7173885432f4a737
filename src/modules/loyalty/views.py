"""Loyalty API views.

Customer endpoints act on the customer linked to the authenticated user;
the ``customers/{id}`` endpoints are restricted to staff.  Domain errors
propagate to the project exception handler.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.customers.exceptions import CustomerNotFound
from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.loyalty.serializers import (
    AwardBonusSerializer,
    CalculatePointsSerializer,
    LoyaltySummarySerializer,
    LoyaltyTransactionSerializer,
    RedeemPointsSerializer,
)
from modules.loyalty.services import LoyaltyService

ADMIN_ACTIONS = {"customer_detail", "award_bonus"}


class LoyaltyViewSet(GenericViewSet):
    """ViewSet exposing the ``LoyaltyService``."""

    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._customers = CustomerDjangoRepository()
        self._service = LoyaltyService(customer_repository=self._customers)

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [IsAuthenticated(), IsAdminUser()]
        return [IsAuthenticated()]

    def _current_customer(self, request: Request) -> Customer:
        customer = self._customers.get_by_user(request.user.pk)
        if not customer:
            raise CustomerNotFound("No customer account is linked to this user.")
        return customer

    # ------------------------------------------------------------------
    # Customer endpoints
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def summary(self, request: Request) -> Response:
        """GET /api/v1/loyalty/summary/"""
        customer = self._current_customer(request)
        summary = self._service.get_summary(customer.id)
        return Response(LoyaltySummarySerializer(summary).data)

    @action(detail=False, methods=["get"])
    def transactions(self, request: Request) -> Response:
        """GET /api/v1/loyalty/transactions/ (paginated, newest first)"""
        customer = self._current_customer(request)
        queryset = self._service.get_transaction_history(customer.id).select_related(
            "order"
        )
        page = self.paginate_queryset(queryset)
        serializer = LoyaltyTransactionSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=["post"])
    def redeem(self, request: Request) -> Response:
        """POST /api/v1/loyalty/redeem/"""
        serializer = RedeemPointsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        customer = self._current_customer(request)
        result = self._service.redeem_points(
            customer.id, serializer.validated_data["points"]
        )
        return Response(result.model_dump(mode="json"))

    @action(detail=False, methods=["get"])
    def config(self, request: Request) -> Response:
        """GET /api/v1/loyalty/config/"""
        return Response(self._service.config.as_dict())

    @action(detail=False, methods=["get"])
    def calculate(self, request: Request) -> Response:
        """GET /api/v1/loyalty/calculate/?amount=250.00"""
        serializer = CalculatePointsSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        breakdown = self._service.calculate_points_earned(
            serializer.validated_data["amount"]
        )
        return Response(breakdown.model_dump())

    # ------------------------------------------------------------------
    # Admin endpoints
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"], url_path=r"customers/(?P<customer_id>[^/.]+)")
    def customer_detail(self, request: Request, customer_id: str) -> Response:
        """GET /api/v1/loyalty/customers/{customer_id}/"""
        summary = self._service.get_summary(customer_id)
        return Response(LoyaltySummarySerializer(summary).data)

    @action(
        detail=False,
        methods=["post"],
        url_path=r"customers/(?P<customer_id>[^/.]+)/bonus",
    )
    def award_bonus(self, request: Request, customer_id: str) -> Response:
        """POST /api/v1/loyalty/customers/{customer_id}/bonus/"""
        serializer = AwardBonusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._service.award_bonus_points(
            customer_id,
            serializer.validated_data["points"],
            serializer.validated_data["description"],
        )
        return Response(result.model_dump(), status=status.HTTP_201_CREATED)
