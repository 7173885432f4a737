"""Product domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFoundError, ValidationFailed


class ProductNotFound(NotFoundError):
    """The requested product does not exist or has been soft-deleted."""

    code = "product_not_found"
    default_message = "Product not found."


class ProductUnavailable(ValidationFailed):
    """The product exists but is inactive and cannot be ordered."""

    code = "product_unavailable"
    default_message = "Product is not available for sale."
