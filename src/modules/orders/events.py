"""Domain events for the Orders bounded context.

Events are written to the outbox by ``OrderDjangoRepository.save`` and
published on the in-process bus by the outbox dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when an order is placed.

    Carries the verification code so the customer can be told it once.
    """

    customer_id: str
    invoice: int
    verification_code: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every status transition."""

    customer_id: str
    invoice: int
    old_status: str
    new_status: str
