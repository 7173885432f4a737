"""Unit tests for the loyalty ledger postings.

Covers:
- award_points: earned + bonus rows, balances and purchase statistics.
- redeem_points: minimum, overdraw, exact balance.
- expire_old_points: only past-due active accrual rows.
- Cancellation refunds and earned-points removal.
- award_bonus_points, summary, history and reconcile.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.customers.exceptions import CustomerNotFound
from modules.customers.models import Customer
from modules.loyalty.constants import TransactionStatus, TransactionType
from modules.loyalty.exceptions import (
    BelowMinimumRedemption,
    InsufficientPoints,
    InvalidPointsAmount,
)
from modules.loyalty.models import LoyaltyTransaction

pytestmark = pytest.mark.unit


def _balances(customer) -> dict:
    customer.refresh_from_db()
    return customer.loyalty_points


# ---------------------------------------------------------------------------
# Award
# ---------------------------------------------------------------------------


class TestAwardPoints:
    def test_award_with_bonus_tier(self, loyalty_service, customer):
        now = timezone.now()
        result = loyalty_service.award_points(
            customer.id, None, Decimal("1000.00"), now=now
        )

        assert result.points_awarded == 1150
        assert result.breakdown.base_points == 1000
        assert result.breakdown.bonus_points == 150
        assert _balances(customer) == {"current": 1150, "total": 1150, "used": 0}

        rows = {
            row.type: row
            for row in LoyaltyTransaction.objects.filter(customer_id=customer.id)
        }
        assert rows[TransactionType.EARNED].points == 1000
        assert rows[TransactionType.EARNED].balance_after == 1000
        assert rows[TransactionType.BONUS].points == 150
        assert rows[TransactionType.BONUS].balance_after == 1150
        assert rows[TransactionType.EARNED].expiry_date == now + timedelta(days=365)

    def test_award_without_bonus_posts_single_row(self, loyalty_service, customer):
        loyalty_service.award_points(customer.id, None, Decimal("250.00"))
        assert LoyaltyTransaction.objects.filter(customer_id=customer.id).count() == 1

    def test_award_updates_purchase_statistics(self, loyalty_service, customer):
        loyalty_service.award_points(customer.id, None, Decimal("100.00"))
        loyalty_service.award_points(customer.id, None, Decimal("50.00"))

        customer.refresh_from_db()
        assert customer.total_orders == 2
        assert customer.total_spent == Decimal("150.00")
        assert customer.average_order_value == Decimal("75.00")
        assert customer.last_order_date is not None

    def test_zero_amount_posts_nothing(self, loyalty_service, customer):
        result = loyalty_service.award_points(customer.id, None, Decimal("0"))
        assert result.points_awarded == 0
        assert not LoyaltyTransaction.objects.filter(customer_id=customer.id).exists()

    def test_unknown_customer(self, loyalty_service):
        with pytest.raises(CustomerNotFound):
            loyalty_service.award_points(uuid4(), None, Decimal("10"))

    def test_delivery_awards_points(self, place_order, advance, customer):
        order = advance(place_order(), "Delivered")
        assert _balances(customer)["current"] == 250
        earned = LoyaltyTransaction.objects.get(
            customer_id=customer.id, type=TransactionType.EARNED
        )
        assert earned.order_id == order.id


# ---------------------------------------------------------------------------
# Redeem
# ---------------------------------------------------------------------------


class TestRedeemPoints:
    @pytest.fixture()
    def funded(self, loyalty_service, customer):
        loyalty_service.award_bonus_points(customer.id, 300)
        return customer

    def test_below_minimum(self, loyalty_service, funded):
        with pytest.raises(BelowMinimumRedemption):
            loyalty_service.redeem_points(funded.id, 99)
        assert _balances(funded)["current"] == 300

    def test_more_than_balance(self, loyalty_service, funded):
        with pytest.raises(InsufficientPoints):
            loyalty_service.redeem_points(funded.id, 301)
        assert _balances(funded) == {"current": 300, "total": 300, "used": 0}

    def test_exact_balance(self, loyalty_service, funded):
        result = loyalty_service.redeem_points(funded.id, 300)

        assert result.remaining_points == 0
        assert result.discount_amount == Decimal("3.00")
        assert _balances(funded) == {"current": 0, "total": 300, "used": 300}

    def test_redeemed_row(self, loyalty_service, funded):
        loyalty_service.redeem_points(funded.id, 120)
        row = LoyaltyTransaction.objects.get(
            customer_id=funded.id, type=TransactionType.REDEEMED
        )
        assert row.points == -120
        assert row.balance_after == 180
        assert row.discount_amount == Decimal("1.20")
        assert row.expiry_date is None


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpireOldPoints:
    def test_expires_only_past_due_rows(self, loyalty_service, customer):
        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("200"), now=long_ago)
        loyalty_service.award_points(customer.id, None, Decimal("80"))

        count = loyalty_service.expire_old_points()

        assert count == 1
        assert _balances(customer) == {"current": 80, "total": 280, "used": 0}
        old = LoyaltyTransaction.objects.get(
            customer_id=customer.id, type=TransactionType.EARNED, points=200
        )
        assert old.status == TransactionStatus.EXPIRED
        posting = LoyaltyTransaction.objects.get(
            customer_id=customer.id, type=TransactionType.EXPIRED
        )
        assert posting.points == -200
        assert posting.balance_after == 80

    def test_expiry_is_idempotent(self, loyalty_service, customer):
        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("200"), now=long_ago)

        assert loyalty_service.expire_old_points() == 1
        assert loyalty_service.expire_old_points() == 0
        assert _balances(customer)["current"] == 0

    def test_expired_bonus_rows_too(self, loyalty_service, customer):
        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("500"), now=long_ago)

        assert loyalty_service.expire_old_points() == 2
        assert _balances(customer)["current"] == 0

    def test_expiry_can_drive_balance_negative(self, loyalty_service, customer):
        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("200"), now=long_ago)
        loyalty_service.redeem_points(customer.id, 150)

        loyalty_service.expire_old_points()

        assert _balances(customer)["current"] == -150

    def test_task_runs_expiry(self, loyalty_service, customer):
        from modules.loyalty.tasks import expire_points

        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("200"), now=long_ago)

        assert expire_points() == 1

    def test_points_expire_one_year_after_award(self, loyalty_service, customer):
        from modules.loyalty.tasks import expire_points

        with freeze_time("2025-01-10 09:00:00"):
            loyalty_service.award_points(customer.id, None, Decimal("80"))

        with freeze_time("2026-01-10 08:59:59"):
            assert expire_points() == 0
        with freeze_time("2026-01-10 09:00:01"):
            assert expire_points() == 1

        assert _balances(customer) == {"current": 0, "total": 80, "used": 0}


# ---------------------------------------------------------------------------
# Cancellation postings
# ---------------------------------------------------------------------------


class TestCancellationPostings:
    def test_restore_points(self, loyalty_service, customer):
        loyalty_service.award_bonus_points(customer.id, 300)
        loyalty_service.redeem_points(customer.id, 120)

        balance = loyalty_service.restore_points_from_cancelled_order(
            customer.id, None, 120
        )

        assert balance == 300
        assert _balances(customer) == {"current": 300, "total": 300, "used": 0}

    def test_restore_requires_positive_points(self, loyalty_service, customer):
        with pytest.raises(InvalidPointsAmount):
            loyalty_service.restore_points_from_cancelled_order(customer.id, None, 0)

    def test_remove_earned_points(self, loyalty_service, customer, place_order):
        order = place_order()
        loyalty_service.award_points(customer.id, order.id, Decimal("600"))

        removed = loyalty_service.remove_earned_points_from_cancelled_order(
            customer.id, order.id
        )

        assert removed == 650
        assert _balances(customer) == {"current": 0, "total": 0, "used": 0}
        refunds = LoyaltyTransaction.objects.filter(
            order_id=order.id, type=TransactionType.REFUND
        )
        assert sorted(refunds.values_list("points", flat=True)) == [-600, -50]

    def test_remove_earned_points_is_idempotent(
        self, loyalty_service, customer, place_order
    ):
        order = place_order()
        loyalty_service.award_points(customer.id, order.id, Decimal("100"))

        loyalty_service.remove_earned_points_from_cancelled_order(customer.id, order.id)
        second = loyalty_service.remove_earned_points_from_cancelled_order(
            customer.id, order.id
        )

        assert second == 0
        assert _balances(customer)["current"] == 0


# ---------------------------------------------------------------------------
# Bonus, queries and reconciliation
# ---------------------------------------------------------------------------


class TestBonusAndQueries:
    def test_award_bonus_points(self, loyalty_service, customer):
        result = loyalty_service.award_bonus_points(customer.id, 75, "birthday")

        assert result.balance == 75
        row = LoyaltyTransaction.objects.get(customer_id=customer.id)
        assert row.type == TransactionType.BONUS
        assert row.description == "birthday"
        assert row.expiry_date is not None

    @pytest.mark.parametrize("points", [0, -5])
    def test_bonus_must_be_positive(self, loyalty_service, customer, points):
        with pytest.raises(InvalidPointsAmount):
            loyalty_service.award_bonus_points(customer.id, points)

    def test_summary(self, loyalty_service, customer):
        soon = timezone.now() - timedelta(days=350)
        loyalty_service.award_points(customer.id, None, Decimal("40"), now=soon)
        loyalty_service.award_points(customer.id, None, Decimal("100"))

        summary = loyalty_service.get_summary(customer.id)

        assert summary["customer"].loyalty_current == 140
        assert summary["points_expiring_soon"] == 40
        assert summary["redemption_value"] == Decimal("1.40")
        assert len(summary["recent_transactions"]) == 2
        assert summary["config"]["minimum_redemption"] == 100

    def test_history_newest_first(self, loyalty_service, customer):
        loyalty_service.award_bonus_points(customer.id, 10, "first")
        loyalty_service.award_bonus_points(customer.id, 20, "second")

        history = list(loyalty_service.get_transaction_history(customer.id))

        assert [row.description for row in history] == ["second", "first"]

    def test_reconcile_after_mixed_activity(self, loyalty_service, customer):
        long_ago = timezone.now() - timedelta(days=400)
        loyalty_service.award_points(customer.id, None, Decimal("1000"), now=long_ago)
        loyalty_service.award_points(customer.id, None, Decimal("300"))
        loyalty_service.redeem_points(customer.id, 200)
        loyalty_service.restore_points_from_cancelled_order(customer.id, None, 200)
        loyalty_service.expire_old_points()

        replay = loyalty_service.reconcile(customer.id)

        assert replay.is_consistent
        assert replay.current == 300
        assert replay.total == 1450

    def test_reconcile_reports_drift(self, loyalty_service, customer):
        loyalty_service.award_bonus_points(customer.id, 100)
        Customer.objects.filter(id=customer.id).update(loyalty_current=90)

        replay = loyalty_service.reconcile(customer.id)

        assert not replay.is_consistent
        assert replay.drift == {"current": -10}
