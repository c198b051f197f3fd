"""
Pack type configuration.

Pack types are static: defined here, loaded once, never mutated at runtime.
"""

import math
from dataclasses import dataclass

from packvault.config import settings
from packvault.models.card import RARITY_ORDER, Rarity

# Rarity weights are percentages; float sums may drift by rounding
WEIGHT_SUM_TOLERANCE = 1e-6


@dataclass(frozen=True, slots=True)
class RarityTable:
    """Draw weights (percent) for the four rarity tiers. Sums to 100."""

    super: float
    epic: float
    rare: float
    common: float

    def __post_init__(self) -> None:
        weights = (self.super, self.epic, self.rare, self.common)
        if any(w < 0 for w in weights):
            raise ValueError(f"Rarity weights must be non-negative: {weights}")
        total = sum(weights)
        if not math.isclose(total, 100.0, abs_tol=WEIGHT_SUM_TOLERANCE):
            raise ValueError(f"Rarity weights must sum to 100, got {total}")

    def weight(self, rarity: Rarity) -> float:
        """Weight for a single rarity tier."""
        return {
            Rarity.SUPER: self.super,
            Rarity.EPIC: self.epic,
            Rarity.RARE: self.rare,
            Rarity.COMMON: self.common,
        }[rarity]

    def ordered_weights(self) -> list[tuple[Rarity, float]]:
        """Weights in draw order (Super, Epic, Rare, Common)."""
        return [(rarity, self.weight(rarity)) for rarity in RARITY_ORDER]


@dataclass(frozen=True, slots=True)
class PackType:
    """
    A purchasable pack.

    Attributes:
        id: Pack identifier ("standard", "premium", "ultimate")
        name: Display name
        price: Credit cost per opening
        card_count: Cards drawn per opening
        description: Short marketing blurb
        rarity_table: Draw weights for this pack
    """

    id: str
    name: str
    price: int
    card_count: int
    description: str
    rarity_table: RarityTable


PACK_TYPES: dict[str, PackType] = {
    "standard": PackType(
        id="standard",
        name="Standard Pack",
        price=500,
        card_count=5,
        description="Basic pack with balanced card distribution",
        rarity_table=RarityTable(super=1.5, epic=8, rare=28, common=62.5),
    ),
    "premium": PackType(
        id="premium",
        name="Premium Pack",
        price=1000,
        card_count=5,
        description="Enhanced pack with better rare card chances",
        rarity_table=RarityTable(super=6, epic=22, rare=35, common=37),
    ),
    "ultimate": PackType(
        id="ultimate",
        name="Ultimate Pack",
        price=2000,
        card_count=5,
        description="Premium pack with 15% Super card rate!",
        rarity_table=RarityTable(super=15, epic=40, rare=35, common=10),
    ),
}


def get_pack_type(pack_id: str) -> PackType | None:
    """Get a pack type by id. Returns None if unknown."""
    return PACK_TYPES.get(pack_id)


def resolve_pack_type(pack_id: str | None) -> PackType:
    """
    Get a pack type by id, substituting the default pack for unknown ids.

    Unknown ids are a defined fallback, not an error.
    """
    pack_type = get_pack_type(pack_id) if pack_id else None
    if pack_type is None:
        return PACK_TYPES[settings.default_pack_type]
    return pack_type


def all_pack_types() -> list[PackType]:
    """All configured pack types, in definition order."""
    return list(PACK_TYPES.values())


def affordable_pack_count(credits: int, pack_type: PackType) -> int:
    """How many packs of this type a balance can pay for."""
    if credits <= 0:
        return 0
    return credits // pack_type.price


def _format_rate(weight: float) -> str:
    # 8.0 -> "8", 62.5 -> "62.5"
    return f"{weight:g}"


def pack_rate_description(pack_type: PackType) -> str:
    """Human-readable odds, e.g. 'Super: 1.5% | Epic: 8% | Rare: 28% | Common: 62.5%'."""
    return " | ".join(
        f"{rarity.value}: {_format_rate(weight)}%"
        for rarity, weight in pack_type.rarity_table.ordered_weights()
    )
