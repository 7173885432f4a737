"""DRF exception handling on top of *drf-standardized-errors*.

Every error response follows the same envelope::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

``DomainError`` subclasses raised by the Service Layer are converted into
``APIException`` instances carrying the domain ``code`` and HTTP status.
Unhandled exceptions fall through to the library, which renders a generic
500 without leaking the stack trace.
"""

from __future__ import annotations

import structlog
from drf_standardized_errors.handler import ExceptionHandler
from pydantic import ValidationError as PydanticValidationError
from rest_framework import exceptions, status

from modules.core.exceptions import DomainError

logger = structlog.get_logger(__name__)


class DomainAPIException(exceptions.APIException):
    """``APIException`` built from a ``DomainError``."""

    def __init__(self, exc: DomainError) -> None:
        self.status_code = exc.status_code
        super().__init__(detail=exc.message, code=exc.code)


class DomainExceptionHandler(ExceptionHandler):
    """Translate domain and DTO validation errors before standard handling."""

    def convert_known_exceptions(self, exc: Exception) -> Exception:
        if isinstance(exc, DomainError):
            log = logger.bind(error_code=exc.code, status_code=exc.status_code)
            if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
                log.error("api.domain_error", detail=exc.message)
            else:
                log.info("api.domain_error", detail=exc.message)
            return DomainAPIException(exc)

        if isinstance(exc, PydanticValidationError):
            messages = [
                f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
                for err in exc.errors()
            ]
            return exceptions.ValidationError(messages)

        return super().convert_known_exceptions(exc)
