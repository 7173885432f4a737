"""Delivery verification codes.

A six-digit code is drawn when the order is created and handed to the
customer.  The driver must enter it to complete the delivery; the first
successful match consumes it.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from django.utils import timezone

from modules.orders.exceptions import (
    CodeAlreadyUsed,
    InvalidVerificationCode,
    MalformedVerificationCode,
)

if TYPE_CHECKING:
    from modules.orders.models import Order

CODE_LENGTH = 6
CODE_MIN = 10 ** (CODE_LENGTH - 1)
CODE_SPAN = 9 * CODE_MIN


def issue_code() -> str:
    """Draw a code uniformly from ``100000..999999`` with a CSPRNG."""
    return str(CODE_MIN + secrets.randbelow(CODE_SPAN))


def is_well_formed(code: Optional[str]) -> bool:
    return (
        isinstance(code, str)
        and len(code) == CODE_LENGTH
        and code.isascii()
        and code.isdigit()
    )


def check_code(order: Order, submitted: Optional[str]) -> None:
    """Validate ``submitted`` against the order's code without consuming it.

    Raises:
        CodeAlreadyUsed: the code was consumed by an earlier delivery.
        MalformedVerificationCode: the code is not six digits.
        InvalidVerificationCode: the code does not match.
    """
    if order.verification_code_used:
        raise CodeAlreadyUsed()
    if submitted is not None:
        submitted = submitted.strip()
    if not is_well_formed(submitted):
        raise MalformedVerificationCode()
    if not hmac.compare_digest(submitted.encode(), order.verification_code.encode()):
        raise InvalidVerificationCode()


def consume_code(order: Order, now: Optional[datetime] = None) -> None:
    order.verification_code_used = True
    order.verification_code_used_at = now or timezone.now()
