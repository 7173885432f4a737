"""Query-string filters for ``GET /api/v1/orders/``."""

import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    """Filters for the staff and driver order lists.

    ``status`` matches case-insensitively so ``?status=out for delivery``
    works; ``collected`` narrows a driver's list to orders ready to leave.
    """

    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    driver = django_filters.NumberFilter(field_name="assigned_driver_id")
    unassigned = django_filters.BooleanFilter(
        field_name="assigned_driver", lookup_expr="isnull"
    )
    collected = django_filters.BooleanFilter(field_name="all_items_collected")
    cancelled_by = django_filters.CharFilter(field_name="cancelled_by")
    invoice = django_filters.NumberFilter(field_name="invoice")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "customer",
            "driver",
            "unassigned",
            "collected",
            "cancelled_by",
            "invoice",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
