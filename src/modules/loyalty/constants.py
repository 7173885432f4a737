"""Loyalty programme constants.

The programme rules are code constants rather than runtime settings:
changing them changes how historical ledgers replay.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, Tuple

from django.db import models


class TransactionType(models.TextChoices):
    EARNED = "earned", "Earned"
    BONUS = "bonus", "Bonus"
    REDEEMED = "redeemed", "Redeemed"
    REFUND = "refund", "Refund"
    EXPIRED = "expired", "Expired"


class TransactionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    USED = "used", "Used"
    EXPIRED = "expired", "Expired"


# Rows that carry an expiry date and can later be expired or taken back.
ACCRUAL_TYPES: Tuple[str, ...] = (TransactionType.EARNED, TransactionType.BONUS)


@dataclass(frozen=True)
class BonusTier:
    amount: Decimal
    bonus: int


@dataclass(frozen=True)
class LoyaltyConfig:
    points_per_currency_unit: int = 1
    point_value: Decimal = Decimal("0.01")
    minimum_redemption: int = 100
    points_expiry_days: int = 365
    expiring_soon_days: int = 30
    bonus_tiers: Tuple[BonusTier, ...] = field(
        default=(
            BonusTier(Decimal("500"), 50),
            BonusTier(Decimal("1000"), 150),
            BonusTier(Decimal("2000"), 400),
        )
    )

    def bonus_for(self, amount: Decimal) -> int:
        """Bonus of the highest tier reached by ``amount`` (tiers do not stack)."""
        bonus = 0
        for tier in self.bonus_tiers:
            if amount >= tier.amount:
                bonus = tier.bonus
        return bonus

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["point_value"] = str(self.point_value)
        data["bonus_tiers"] = [
            {"amount": str(tier.amount), "bonus": tier.bonus}
            for tier in self.bonus_tiers
        ]
        return data


LOYALTY = LoyaltyConfig()
