"""Order access rules.

- Staff users administer every order.
- Drivers (members of the ``drivers`` group) act on the orders assigned
  to them.
- Customers read and cancel their own orders.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rest_framework.permissions import BasePermission

from modules.orders.constants import DRIVERS_GROUP
from modules.orders.exceptions import OrderAccessDenied

if TYPE_CHECKING:
    from modules.orders.models import Order


def is_admin(user: Any) -> bool:
    return bool(user and user.is_authenticated and user.is_staff)


def is_driver(user: Any) -> bool:
    return bool(
        user
        and user.is_authenticated
        and user.groups.filter(name=DRIVERS_GROUP).exists()
    )


def is_assigned_driver(user: Any, order: Order) -> bool:
    return order.assigned_driver_id is not None and order.assigned_driver_id == user.pk


def is_owner(user: Any, order: Order) -> bool:
    return order.customer.user_id is not None and order.customer.user_id == user.pk


def ensure_can_view(user: Any, order: Order) -> None:
    if is_admin(user) or is_assigned_driver(user, order) or is_owner(user, order):
        return
    raise OrderAccessDenied()


def ensure_admin(user: Any) -> None:
    if not is_admin(user):
        raise OrderAccessDenied("Only administrators can perform this action.")


def ensure_can_deliver(user: Any, order: Order) -> None:
    """Checklist and delivery actions: the assigned driver or an admin."""
    if is_admin(user) or is_assigned_driver(user, order):
        return
    raise OrderAccessDenied("Only the assigned driver can perform this action.")


def ensure_can_cancel(user: Any, order: Order) -> None:
    if is_admin(user) or is_owner(user, order):
        return
    raise OrderAccessDenied("Only the customer or an administrator can cancel.")


class IsDriver(BasePermission):
    message = "Only drivers can access assigned orders."

    def has_permission(self, request, view) -> bool:
        return is_driver(request.user)
