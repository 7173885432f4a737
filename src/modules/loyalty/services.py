"""Loyalty service layer (Use Cases).

Owns every write to the loyalty ledger and to the balance columns on
``Customer``.  Each posting appends a ``LoyaltyTransaction`` and moves the
balances in the same transaction, so the ledger can always be replayed
into the stored balances (see ``reconcile``).

Business rules enforced:
- One point per currency unit spent (floored) plus the highest bonus tier.
- Earned and bonus points expire 365 days after they are granted.
- Redemptions need at least 100 points and never overdraw the balance.
- Cancelling an order refunds the points redeemed on it and takes back
  the points it earned.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F, Q, QuerySet, Sum
from django.utils import timezone

from modules.customers.exceptions import CustomerNotFound
from modules.customers.models import Customer
from modules.loyalty.constants import (
    ACCRUAL_TYPES,
    LOYALTY,
    LoyaltyConfig,
    TransactionStatus,
    TransactionType,
)
from modules.loyalty.dtos import (
    AwardResult,
    LedgerReplay,
    PointsBreakdown,
    RedemptionResult,
)
from modules.loyalty.exceptions import (
    BelowMinimumRedemption,
    InsufficientPoints,
    InvalidPointsAmount,
)
from modules.loyalty.models import LoyaltyTransaction

if TYPE_CHECKING:
    from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class LoyaltyService:
    """Application service for the loyalty ledger.

    Receives an ``ICustomerRepository`` via constructor injection (DIP).
    """

    def __init__(
        self,
        customer_repository: ICustomerRepository,
        config: LoyaltyConfig = LOYALTY,
    ) -> None:
        self._customer_repo = customer_repository
        self.config = config

    # ------------------------------------------------------------------
    # Calculations
    # ------------------------------------------------------------------

    def calculate_points_earned(self, amount: Any) -> PointsBreakdown:
        """Points an order of ``amount`` earns: floored base plus tier bonus."""
        amount = Decimal(str(amount))
        if amount <= 0:
            return PointsBreakdown(base_points=0, bonus_points=0, total_points=0)

        base = int(
            (amount * self.config.points_per_currency_unit).to_integral_value(
                rounding=ROUND_FLOOR
            )
        )
        bonus = self.config.bonus_for(amount)
        return PointsBreakdown(
            base_points=base, bonus_points=bonus, total_points=base + bonus
        )

    def redemption_value(self, points: int) -> Decimal:
        return (Decimal(points) * self.config.point_value).quantize(CENT)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def award_points(
        self,
        customer_id: UUID,
        order_id: Optional[UUID],
        amount: Any,
        now: Optional[datetime] = None,
    ) -> AwardResult:
        """Credit the points earned by a delivered order.

        Posts an ``earned`` row for the base points and a ``bonus`` row
        for the tier bonus (each only when positive), then updates the
        customer's balances and purchase statistics.

        Raises:
            CustomerNotFound: customer does not exist.
        """
        now = now or timezone.now()
        amount = Decimal(str(amount))
        customer = self._lock_customer(customer_id)
        breakdown = self.calculate_points_earned(amount)
        expiry = now + timedelta(days=self.config.points_expiry_days)

        log = logger.bind(customer_id=str(customer_id), order_id=str(order_id))

        balance = customer.loyalty_current
        if breakdown.base_points > 0:
            balance += breakdown.base_points
            self._post(
                customer,
                TransactionType.EARNED,
                breakdown.base_points,
                f"Earned {breakdown.base_points} points from order",
                balance_after=balance,
                order_id=order_id,
                expiry_date=expiry,
            )
        if breakdown.bonus_points > 0:
            balance += breakdown.bonus_points
            self._post(
                customer,
                TransactionType.BONUS,
                breakdown.bonus_points,
                f"Bonus {breakdown.bonus_points} points for order over {amount}",
                balance_after=balance,
                order_id=order_id,
                expiry_date=expiry,
            )

        orders = customer.total_orders + 1
        spent = customer.total_spent + amount
        Customer.objects.filter(id=customer.id).update(
            loyalty_current=F("loyalty_current") + breakdown.total_points,
            loyalty_total=F("loyalty_total") + breakdown.total_points,
            total_orders=F("total_orders") + 1,
            total_spent=F("total_spent") + amount,
            average_order_value=(spent / orders).quantize(CENT, rounding=ROUND_HALF_UP),
            last_order_date=now,
            updated_at=now,
        )

        log.info(
            "loyalty.points_awarded",
            base_points=breakdown.base_points,
            bonus_points=breakdown.bonus_points,
            balance=balance,
        )
        return AwardResult(
            points_awarded=breakdown.total_points, breakdown=breakdown, balance=balance
        )

    @transaction.atomic
    def redeem_points(
        self,
        customer_id: UUID,
        points: int,
        order_id: Optional[UUID] = None,
    ) -> RedemptionResult:
        """Debit ``points`` in exchange for a discount.

        The balance write only succeeds while ``loyalty_current >= points``,
        so two concurrent redemptions can never overdraw the account.

        Raises:
            BelowMinimumRedemption: fewer than ``minimum_redemption`` points.
            CustomerNotFound: customer does not exist.
            InsufficientPoints: the balance is lower than ``points``.
        """
        log = logger.bind(customer_id=str(customer_id), points=points)

        if points < self.config.minimum_redemption:
            log.warning("loyalty.redemption_below_minimum")
            raise BelowMinimumRedemption(
                f"Minimum {self.config.minimum_redemption} points required for redemption."
            )

        customer = self._lock_customer(customer_id)
        if customer.loyalty_current < points:
            log.warning("loyalty.insufficient_points", available=customer.loyalty_current)
            raise InsufficientPoints(
                f"Requested {points} points, available {customer.loyalty_current}."
            )

        updated = Customer.objects.filter(
            id=customer.id, loyalty_current__gte=points
        ).update(
            loyalty_current=F("loyalty_current") - points,
            loyalty_used=F("loyalty_used") + points,
            updated_at=timezone.now(),
        )
        if not updated:
            log.warning("loyalty.redemption_lost_race")
            raise InsufficientPoints()

        customer.refresh_from_db(fields=["loyalty_current", "loyalty_used"])
        discount = self.redemption_value(points)
        remaining = customer.loyalty_current
        self._post(
            customer,
            TransactionType.REDEEMED,
            -points,
            f"Redeemed {points} points for {discount} discount",
            balance_after=remaining,
            order_id=order_id,
            discount_amount=discount,
        )

        log.info("loyalty.points_redeemed", discount=str(discount), remaining=remaining)
        return RedemptionResult(
            points_redeemed=points, discount_amount=discount, remaining_points=remaining
        )

    def expire_old_points(self, now: Optional[datetime] = None) -> int:
        """Expire every active earned/bonus row whose expiry date has passed.

        Each row is expired in its own transaction: the row moves to
        ``expired``, a negated ``expired`` posting is appended and
        ``loyalty_current`` drops by the same amount.  ``total`` and
        ``used`` are untouched.

        Returns:
            The number of rows expired.
        """
        now = now or timezone.now()
        candidates = (
            LoyaltyTransaction.objects.filter(
                type__in=ACCRUAL_TYPES,
                status=TransactionStatus.ACTIVE,
                expiry_date__lt=now,
            )
            .order_by("customer_id", "created_at")
            .values_list("id", flat=True)
        )

        expired = 0
        for tx_id in list(candidates):
            with transaction.atomic():
                row = (
                    LoyaltyTransaction.objects.select_for_update()
                    .filter(id=tx_id, status=TransactionStatus.ACTIVE)
                    .first()
                )
                if row is None:
                    continue
                row.status = TransactionStatus.EXPIRED
                row.save(update_fields=["status", "updated_at"])

                customer = self._lock_customer(row.customer_id)
                balance = customer.loyalty_current - row.points
                self._post(
                    customer,
                    TransactionType.EXPIRED,
                    -row.points,
                    f"{row.points} points expired",
                    balance_after=balance,
                    order_id=row.order_id,
                )
                Customer.objects.filter(id=customer.id).update(
                    loyalty_current=F("loyalty_current") - row.points,
                    updated_at=now,
                )
                expired += 1

        logger.info("loyalty.points_expired", count=expired)
        return expired

    @transaction.atomic
    def restore_points_from_cancelled_order(
        self, customer_id: UUID, order_id: Optional[UUID], points: int
    ) -> int:
        """Refund the points a cancelled order had redeemed.

        Returns:
            The balance after the refund.

        Raises:
            InvalidPointsAmount: ``points`` is not positive.
            CustomerNotFound: customer does not exist.
        """
        if points <= 0:
            raise InvalidPointsAmount()

        customer = self._lock_customer(customer_id)
        balance = customer.loyalty_current + points
        self._post(
            customer,
            TransactionType.REFUND,
            points,
            f"Refunded {points} points from cancelled order",
            balance_after=balance,
            order_id=order_id,
        )
        Customer.objects.filter(id=customer.id).update(
            loyalty_current=F("loyalty_current") + points,
            loyalty_used=F("loyalty_used") - points,
            updated_at=timezone.now(),
        )
        logger.info(
            "loyalty.points_restored",
            customer_id=str(customer_id),
            order_id=str(order_id),
            points=points,
            balance=balance,
        )
        return balance

    @transaction.atomic
    def remove_earned_points_from_cancelled_order(
        self, customer_id: UUID, order_id: UUID
    ) -> int:
        """Take back the points a cancelled order had earned.

        Every active earned/bonus row of the order moves to ``used`` and is
        offset by a negative ``refund`` posting.

        Returns:
            The number of points removed (0 when the order earned none).
        """
        rows = list(
            LoyaltyTransaction.objects.select_for_update()
            .filter(
                customer_id=customer_id,
                order_id=order_id,
                type__in=ACCRUAL_TYPES,
                status=TransactionStatus.ACTIVE,
            )
            .order_by("created_at")
        )
        if not rows:
            return 0

        customer = self._lock_customer(customer_id)
        balance = customer.loyalty_current
        removed = 0
        for row in rows:
            row.status = TransactionStatus.USED
            row.save(update_fields=["status", "updated_at"])
            balance -= row.points
            removed += row.points
            self._post(
                customer,
                TransactionType.REFUND,
                -row.points,
                f"Removed {row.points} {row.type} points from cancelled order",
                balance_after=balance,
                order_id=order_id,
            )

        Customer.objects.filter(id=customer.id).update(
            loyalty_current=F("loyalty_current") - removed,
            loyalty_total=F("loyalty_total") - removed,
            updated_at=timezone.now(),
        )
        logger.info(
            "loyalty.earned_points_removed",
            customer_id=str(customer_id),
            order_id=str(order_id),
            points=removed,
        )
        return removed

    @transaction.atomic
    def award_bonus_points(
        self,
        customer_id: UUID,
        points: int,
        description: str = "",
        now: Optional[datetime] = None,
    ) -> AwardResult:
        """Grant ``points`` bonus points outside of an order (admin action).

        Raises:
            InvalidPointsAmount: ``points`` is not positive.
            CustomerNotFound: customer does not exist.
        """
        if points <= 0:
            raise InvalidPointsAmount()

        now = now or timezone.now()
        customer = self._lock_customer(customer_id)
        balance = customer.loyalty_current + points
        self._post(
            customer,
            TransactionType.BONUS,
            points,
            description or f"Admin awarded {points} bonus points",
            balance_after=balance,
            expiry_date=now + timedelta(days=self.config.points_expiry_days),
        )
        Customer.objects.filter(id=customer.id).update(
            loyalty_current=F("loyalty_current") + points,
            loyalty_total=F("loyalty_total") + points,
            updated_at=now,
        )
        logger.info(
            "loyalty.bonus_awarded",
            customer_id=str(customer_id),
            points=points,
            balance=balance,
        )
        breakdown = PointsBreakdown(base_points=0, bonus_points=points, total_points=points)
        return AwardResult(points_awarded=points, breakdown=breakdown, balance=balance)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_summary(
        self, customer_id: UUID, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Balances, purchase statistics and recent activity of a customer.

        Raises:
            CustomerNotFound: customer does not exist.
        """
        now = now or timezone.now()
        customer = self._get_customer(customer_id)
        horizon = now + timedelta(days=self.config.expiring_soon_days)

        expiring = LoyaltyTransaction.objects.filter(
            customer_id=customer.id,
            type__in=ACCRUAL_TYPES,
            status=TransactionStatus.ACTIVE,
            expiry_date__gte=now,
            expiry_date__lte=horizon,
        ).aggregate(total=Sum("points"))["total"]

        return {
            "customer": customer,
            "points_expiring_soon": expiring or 0,
            "recent_transactions": list(
                self.get_transaction_history(customer.id).select_related("order")[:10]
            ),
            "redemption_value": self.redemption_value(customer.loyalty_current),
            "config": self.config.as_dict(),
        }

    def get_transaction_history(self, customer_id: UUID) -> QuerySet:
        """Ledger rows of a customer, newest first."""
        return LoyaltyTransaction.objects.filter(customer_id=customer_id).order_by(
            "-created_at", "-id"
        )

    def reconcile(self, customer_id: UUID) -> LedgerReplay:
        """Replay the ledger and compare it with the stored balances.

        ``total = earned + bonus + negative refunds``,
        ``used = -(redeemed + positive refunds)``, ``current = all points``.

        Raises:
            CustomerNotFound: customer does not exist.
        """
        customer = self._get_customer(customer_id)
        sums = LoyaltyTransaction.objects.filter(customer_id=customer.id).aggregate(
            accrued=Sum("points", filter=Q(type__in=ACCRUAL_TYPES)),
            redeemed=Sum("points", filter=Q(type=TransactionType.REDEEMED)),
            refunded=Sum("points", filter=Q(type=TransactionType.REFUND, points__gt=0)),
            clawed_back=Sum(
                "points", filter=Q(type=TransactionType.REFUND, points__lt=0)
            ),
            net=Sum("points"),
        )
        sums = {key: value or 0 for key, value in sums.items()}

        replay = LedgerReplay(
            customer_id=customer.id,
            current=sums["net"],
            total=sums["accrued"] + sums["clawed_back"],
            used=-sums["redeemed"] - sums["refunded"],
            stored_current=customer.loyalty_current,
            stored_total=customer.loyalty_total,
            stored_used=customer.loyalty_used,
        )
        if not replay.is_consistent:
            logger.warning(
                "loyalty.ledger_drift", customer_id=str(customer.id), drift=replay.drift
            )
        return replay

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_customer(self, customer_id: UUID) -> Customer:
        customer = self._customer_repo.get_by_id(str(customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {customer_id} not found.")
        return customer

    def _lock_customer(self, customer_id: UUID) -> Customer:
        customer = self._customer_repo.get_for_update(str(customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {customer_id} not found.")
        return customer

    @staticmethod
    def _post(
        customer: Customer,
        type: str,
        points: int,
        description: str,
        *,
        balance_after: int,
        order_id: Optional[UUID] = None,
        expiry_date: Optional[datetime] = None,
        discount_amount: Decimal = Decimal("0.00"),
    ) -> LoyaltyTransaction:
        return LoyaltyTransaction.objects.create(
            customer=customer,
            type=type,
            points=points,
            description=description,
            order_id=order_id,
            balance_after=balance_after,
            expiry_date=expiry_date,
            discount_amount=discount_amount,
        )
