"""Loyalty DTOs for the Service Layer.

Pydantic v2 contracts between the API layer and ``LoyaltyService``.
DTOs are immutable (``frozen=True``).

- ``RedeemPointsDTO`` / ``AwardBonusDTO``: inputs.
- ``PointsBreakdown``: points an order amount earns.
- ``RedemptionResult`` / ``AwardResult``: ledger postings outcome.
- ``LedgerReplay``: balances recomputed from the ledger.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class RedeemPointsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    points: int = Field(gt=0)
    order_id: Optional[UUID] = None


class AwardBonusDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    points: int = Field(gt=0)
    description: str = ""


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class PointsBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_points: int
    bonus_points: int
    total_points: int


class AwardResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    points_awarded: int
    breakdown: PointsBreakdown
    balance: int


class RedemptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    points_redeemed: int
    discount_amount: Decimal
    remaining_points: int


class LedgerReplay(BaseModel):
    """Balances rebuilt from the ledger next to the stored ones.

    ``drift`` is empty when every stored balance matches its replay.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    current: int
    total: int
    used: int
    stored_current: int
    stored_total: int
    stored_used: int

    @property
    def drift(self) -> dict[str, int]:
        pairs = {
            "current": (self.current, self.stored_current),
            "total": (self.total, self.stored_total),
            "used": (self.used, self.stored_used),
        }
        return {
            name: stored - replay
            for name, (replay, stored) in pairs.items()
            if stored != replay
        }

    @property
    def is_consistent(self) -> bool:
        return not self.drift
