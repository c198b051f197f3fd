from dataclasses import dataclass
from enum import Enum


class Rarity(str, Enum):
    """Card rarity tier. Immutable once assigned to a card."""

    SUPER = "Super"
    EPIC = "Epic"
    RARE = "Rare"
    COMMON = "Common"


# Draw order: cumulative weights are accumulated in this order, and an empty
# pool falls back to the next entry.
RARITY_ORDER: tuple[Rarity, ...] = (Rarity.SUPER, Rarity.EPIC, Rarity.RARE, Rarity.COMMON)


@dataclass(frozen=True, slots=True)
class Card:
    """
    A catalog card definition.

    Attributes:
        id: Catalog identifier
        name: Display name
        defense, offense, mechanics, challenges, game_iq, team_sync:
            Skill attributes, conventionally 0-99
        overall_rating: Derived from the six attributes by the catalog owner
        rarity: Rarity tier
    """

    id: int
    name: str
    defense: int
    offense: int
    mechanics: int
    challenges: int
    game_iq: int
    team_sync: int
    overall_rating: int
    rarity: Rarity
    team: str | None = None
    region: str | None = None
    image_url: str | None = None
