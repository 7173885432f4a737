"""Cancellation compensator.

Reverses the stock and loyalty effects of an order that is being
cancelled.  Each step runs in its own savepoint and is attempted even if
an earlier one failed: a failed step is logged and reported, never
raised, so the cancellation itself always goes through.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, List, Tuple

import structlog
from django.db import transaction

from modules.orders.constants import EARNED_POINTS_REVERSAL_STATES

if TYPE_CHECKING:
    from modules.loyalty.services import LoyaltyService
    from modules.orders.models import Order
    from modules.products.services import StockService

logger = structlog.get_logger(__name__)


@dataclass
class CompensationResult:
    stock_restored: bool = False
    points_restored: int = 0
    earned_points_removed: int = 0
    failed_steps: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_steps


class CancellationCompensator:
    """Undo what an order did to stock and to the loyalty ledger."""

    def __init__(
        self, stock_service: StockService, loyalty_service: LoyaltyService
    ) -> None:
        self._stock = stock_service
        self._loyalty = loyalty_service

    def compensate(self, order: Order, previous_status: str) -> CompensationResult:
        """Run the compensation steps for ``order``.

        ``previous_status`` is the status the order had before ``Cancel``.
        """
        result = CompensationResult()
        log = logger.bind(
            order_id=str(order.id),
            invoice=order.invoice,
            previous_status=previous_status,
        )

        items = list(order.items.all())
        if items:
            ok, _ = self._attempt(
                "restore_stock", log, result, lambda: self._stock.restore_stock(items)
            )
            result.stock_restored = ok

        points = order.loyalty_points_used
        if points > 0:
            ok, _ = self._attempt(
                "restore_points",
                log,
                result,
                lambda: self._loyalty.restore_points_from_cancelled_order(
                    order.customer_id, order.id, points
                ),
            )
            if ok:
                result.points_restored = points

        if previous_status in EARNED_POINTS_REVERSAL_STATES:
            ok, removed = self._attempt(
                "remove_earned_points",
                log,
                result,
                lambda: self._loyalty.remove_earned_points_from_cancelled_order(
                    order.customer_id, order.id
                ),
            )
            if ok:
                result.earned_points_removed = removed

        log.info(
            "order.compensated",
            stock_restored=result.stock_restored,
            points_restored=result.points_restored,
            earned_points_removed=result.earned_points_removed,
            failed_steps=result.failed_steps,
        )
        return result

    @staticmethod
    def _attempt(
        step: str, log: Any, result: CompensationResult, fn: Callable[[], Any]
    ) -> Tuple[bool, Any]:
        try:
            with transaction.atomic():
                return True, fn()
        except Exception:
            log.exception("order.compensation_step_failed", step=step)
            result.failed_steps.append(step)
            return False, None
