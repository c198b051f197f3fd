"""
Pack sampler: weighted rarity draws followed by a uniform card pick.

Each draw is independent. A uniform value in [0, 100) is compared against
cumulative rarity weights in the order Super, Epic, Rare, Common; the first
bucket whose upper bound exceeds the value wins. A card is then chosen
uniformly from that rarity's pool.

An empty pool falls back to the next rarity in draw order. This is a
policy substitution, not an error. Only a completely empty catalog fails.
"""

import logging
import random

from packvault.models.card import RARITY_ORDER, Card, Rarity
from packvault.models.failure import CatalogConfigurationError
from packvault.models.pack import PackType, RarityTable, resolve_pack_type
from packvault.services.catalog import CardCatalog

logger = logging.getLogger(__name__)


def sample_rarity(table: RarityTable, rng: random.Random) -> Rarity:
    """
    Draw one rarity from a weight table.

    Args:
        table: Rarity weights (percent, summing to 100)
        rng: Randomness source

    Returns:
        The first rarity whose cumulative upper bound exceeds the draw
    """
    value = rng.random() * 100
    cumulative = 0.0
    for rarity, weight in table.ordered_weights():
        cumulative += weight
        if value < cumulative:
            return rarity
    # Float rounding can leave value just past the final bound
    return Rarity.COMMON


def _fallback_order(rarity: Rarity) -> list[Rarity]:
    """Rarities to try for a draw: the sampled one, then the rest of draw order."""
    start = RARITY_ORDER.index(rarity)
    # Anything above the sampled rarity is only a last resort when Common is empty
    return list(RARITY_ORDER[start:]) + list(reversed(RARITY_ORDER[:start]))


def pick_card(catalog: CardCatalog, rarity: Rarity, rng: random.Random) -> Card:
    """
    Pick one card of the given rarity, falling back when the pool is empty.

    Raises:
        CatalogConfigurationError: If the catalog has no cards at all
    """
    for candidate in _fallback_order(rarity):
        pool = catalog.cards_of_rarity(candidate)
        if pool:
            if candidate is not rarity:
                logger.debug(
                    "No %s cards in catalog, falling back to %s", rarity.value, candidate.value
                )
            return rng.choice(pool)

    raise CatalogConfigurationError(f"No cards available for rarity {rarity.value} or any fallback")


def draw_pack(
    catalog: CardCatalog,
    pack_type: PackType,
    count: int,
    rng: random.Random,
) -> list[Card]:
    """
    Draw `count` cards for a pack.

    The result always has exactly `count` entries; the same card may appear
    more than once.

    Raises:
        CatalogConfigurationError: If the catalog is empty
        ValueError: If count is negative
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if catalog.is_empty():
        raise CatalogConfigurationError(f"Cannot fill a {pack_type.id} pack: catalog is empty")

    table = pack_type.rarity_table
    return [pick_card(catalog, sample_rarity(table, rng), rng) for _ in range(count)]


def draw_pack_for(
    catalog: CardCatalog,
    pack_id: str | None,
    count: int,
    rng: random.Random,
) -> list[Card]:
    """Draw cards for a pack id, substituting the default pack for unknown ids."""
    return draw_pack(catalog, resolve_pack_type(pack_id), count, rng)
