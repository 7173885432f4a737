"""Customer domain exceptions.

Raised by the Service Layer when business rules are violated.
The DRF exception handler translates them into HTTP responses.
"""

from __future__ import annotations

from modules.core.exceptions import NotFoundError, ValidationFailed


class CustomerNotFound(NotFoundError):
    """The requested customer does not exist or has been soft-deleted."""

    code = "customer_not_found"
    default_message = "Customer not found."


class InactiveCustomer(ValidationFailed):
    """The customer is inactive and cannot place orders or redeem points."""

    code = "inactive_customer"
    default_message = "Customer is inactive."
