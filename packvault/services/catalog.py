"""
In-memory card catalog.

Groups catalog cards by rarity so the pack sampler can pick uniformly
within a tier. Built from typed Card records; see db.operations.load_catalog
for the database loader.
"""

from collections.abc import Iterable

from packvault.models.card import Card, Rarity


class CardCatalog:
    """Read-only view of the card catalog, indexed by id and rarity."""

    def __init__(self, cards: Iterable[Card]) -> None:
        self._by_id: dict[int, Card] = {}
        self._by_rarity: dict[Rarity, list[Card]] = {rarity: [] for rarity in Rarity}
        for card in cards:
            self._by_id[card.id] = card
            self._by_rarity[card.rarity].append(card)

    def card_by_id(self, card_id: int) -> Card | None:
        """Look up a catalog card. Returns None if the id is unknown."""
        return self._by_id.get(card_id)

    def cards_of_rarity(self, rarity: Rarity) -> list[Card]:
        """All cards of a rarity tier (may be empty)."""
        return list(self._by_rarity[rarity])

    def is_empty(self) -> bool:
        return not self._by_id

    def __len__(self) -> int:
        return len(self._by_id)
