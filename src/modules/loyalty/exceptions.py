"""Loyalty domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import StateConflictError, ValidationFailed


class BelowMinimumRedemption(ValidationFailed):
    code = "below_minimum_redemption"
    default_message = "Redemption is below the minimum number of points."


class InsufficientPoints(StateConflictError):
    """The customer's redeemable balance is lower than the requested points."""

    code = "insufficient_points"
    default_message = "Insufficient loyalty points."


class InvalidPointsAmount(ValidationFailed):
    code = "invalid_points_amount"
    default_message = "Points must be a positive integer."
