"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
``modules.core.exception_handler`` translates them into HTTP responses.
"""

from __future__ import annotations

from typing import Iterable

from modules.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationFailed,
)


class OrderNotFound(NotFoundError):
    """The requested order does not exist or has been soft-deleted."""

    code = "order_not_found"
    default_message = "Order not found."


class InvalidOrderStatus(StateConflictError):
    """The requested edge is not part of the order state machine."""

    code = "invalid_order_status"
    default_message = "Invalid status transition."


class InvalidOrderState(StateConflictError):
    """The operation is not allowed while the order is in its current status."""

    code = "invalid_order_state"
    default_message = "Operation not allowed in the current order status."


class PreconditionFailed(StateConflictError):
    """A guard on the transition is not satisfied."""

    code = "precondition_failed"
    default_message = "Transition precondition not met."


class ChecklistIncomplete(PreconditionFailed):
    """Some checklist items are still uncollected."""

    code = "checklist_incomplete"

    def __init__(self, uncollected: Iterable[str]) -> None:
        self.uncollected = list(uncollected)
        super().__init__(
            "Not all products have been collected: " + ", ".join(self.uncollected),
            extra={"uncollected": self.uncollected},
        )


class InvalidVerificationCode(StateConflictError):
    """The submitted delivery code does not match."""

    code = "invalid_verification_code"
    default_message = "Invalid verification code."


class MalformedVerificationCode(ValidationFailed):
    """The submitted delivery code is not six digits."""

    code = "malformed_verification_code"
    default_message = "Verification code must be six digits."


class CodeAlreadyUsed(StateConflictError):
    """The delivery code has already been consumed."""

    code = "verification_code_used"
    default_message = "Verification code has already been used."


class ProductNotInChecklist(NotFoundError):
    """No checklist entry exists for the given product."""

    code = "product_not_in_checklist"
    default_message = "Product not found in the order checklist."


class InvalidPaymentMethod(ValidationFailed):
    code = "invalid_payment_method"
    default_message = "Only cash on delivery is supported."


class TransitionFieldMissing(ValidationFailed):
    """A legal status change lacks a field its target status needs."""

    code = "transition_field_missing"
    default_message = "A field required by the target status is missing."


class DriverNotFound(ValidationFailed):
    """The user to assign does not exist or is not a driver."""

    code = "driver_not_found"
    default_message = "Driver not found."


class OrderAccessDenied(AuthorizationError):
    code = "order_access_denied"
    default_message = "You are not allowed to access this order."
