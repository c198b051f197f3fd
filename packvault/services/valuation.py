"""
Card valuation for selling.

Sell value = floor(base value for the rarity × rating multiplier).
"""

import math

from packvault.config import settings
from packvault.models.card import Rarity

# Descending thresholds; the first one the rating meets applies
RATING_MULTIPLIERS: tuple[tuple[int, float], ...] = (
    (95, 2.0),
    (90, 1.75),
    (85, 1.5),
    (80, 1.25),
    (75, 1.1),
)
DEFAULT_MULTIPLIER = 1.0


def rating_multiplier(overall_rating: int) -> float:
    """Multiplier for an overall rating bucket."""
    for threshold, multiplier in RATING_MULTIPLIERS:
        if overall_rating >= threshold:
            return multiplier
    return DEFAULT_MULTIPLIER


def base_value(rarity: Rarity, base_values: dict[str, int] | None = None) -> int:
    """Base sell value for a rarity tier."""
    values = base_values if base_values is not None else settings.sell_base_values
    return values[Rarity(rarity).value]


def sell_value(
    rarity: Rarity,
    overall_rating: int,
    base_values: dict[str, int] | None = None,
) -> int:
    """
    Credits paid for selling one copy of a card.

    Non-decreasing in overall_rating for a fixed rarity.
    """
    return math.floor(base_value(rarity, base_values) * rating_multiplier(overall_rating))
