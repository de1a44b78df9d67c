# classifier.py
"""Budget utilisation classification.

Pure functions only: callers coerce stored values to ``Money`` before they
get here.
"""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from money import Money, ZERO

RATIO_PLACES = Decimal("0.0001")
DEFAULT_NEAR_THRESHOLD = Decimal("0.90")
DEFAULT_OVER_THRESHOLD = Decimal("1.00")


class AlertLevel(str, Enum):
    NONE = "NONE"
    NEAR = "NEAR"
    EXCEEDED = "EXCEEDED"


@dataclass(frozen=True)
class AlertEvent:
    budget_id: int
    user_id: int
    user_email: Optional[str]
    category: str
    period: date
    ratio: Decimal
    level: AlertLevel
    spent: Money
    limit: Money

    @property
    def exceeded(self) -> bool:
        return self.level is AlertLevel.EXCEEDED


def ratio(spent: Money, limit: Money) -> Decimal:
    """spent / limit, rounded half-up to four places. ``limit`` must be positive."""
    return (spent / limit).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)


def classify(
    spent: Money,
    limit: Money,
    near_threshold: Decimal = DEFAULT_NEAR_THRESHOLD,
    over_threshold: Decimal = DEFAULT_OVER_THRESHOLD,
) -> AlertLevel:
    if limit <= ZERO:
        return AlertLevel.NONE
    r = ratio(spent, limit)
    if r >= over_threshold:
        return AlertLevel.EXCEEDED
    if r >= near_threshold:
        return AlertLevel.NEAR
    return AlertLevel.NONE
