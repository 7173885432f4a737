"""Notification API views (customer inbox)."""

from __future__ import annotations

from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.customers.exceptions import CustomerNotFound
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.notifications.serializers import NotificationSerializer
from modules.notifications.services import NotificationService


class NotificationViewSet(GenericViewSet):
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._customers = CustomerDjangoRepository()
        self._service = NotificationService()

    def _customer_id(self, request: Request):
        customer = self._customers.get_by_user(request.user.pk)
        if not customer:
            raise CustomerNotFound("No customer account is linked to this user.")
        return customer.id

    def list(self, request: Request) -> Response:
        """GET /api/v1/notifications/"""
        customer_id = self._customer_id(request)
        page = self.paginate_queryset(self._service.list_for_customer(customer_id))
        response = self.get_paginated_response(
            NotificationSerializer(page, many=True).data
        )
        response.data["unread_count"] = self._service.unread_count(customer_id)
        return response

    @action(detail=True, methods=["post"])
    def read(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/notifications/{pk}/read/"""
        notification = self._service.mark_as_read(pk, self._customer_id(request))
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request: Request) -> Response:
        """POST /api/v1/notifications/read-all/"""
        updated = self._service.mark_all_as_read(self._customer_id(request))
        return Response({"updated": updated})
