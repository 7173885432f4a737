"""Domain error taxonomy shared by every module.

Each module raises subclasses of these bases from its Service Layer.
The DRF exception handler (``modules.core.exception_handler``) maps a
``DomainError`` onto its HTTP status and exposes ``code`` as the
machine-readable error code, so views never build error payloads by hand.

- ``ValidationFailed``: malformed or missing request data (400).
- ``NotFoundError``: unknown order / customer / product (404).
- ``StateConflictError``: illegal transition or guard violation (409).
- ``AuthorizationError``: actor does not own or administer the resource (403).
- ``InternalError``: unexpected persistence failure (500).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for business-rule violations."""

    status_code: int = 400
    code: str = "domain_error"
    default_message: str = "The request could not be processed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.default_message)
        if code is not None:
            self.code = code
        self.extra: Dict[str, Any] = extra or {}

    @property
    def message(self) -> str:
        return str(self)


class ValidationFailed(DomainError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request data."


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class StateConflictError(DomainError):
    status_code = 409
    code = "state_conflict"
    default_message = "The resource is not in a state that allows this operation."


class AuthorizationError(DomainError):
    status_code = 403
    code = "permission_denied"
    default_message = "You do not have permission to perform this action."


class InternalError(DomainError):
    status_code = 500
    code = "internal_error"
    default_message = "An internal error occurred."
