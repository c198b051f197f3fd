"""
Response models shared across routers.
"""

from pydantic import BaseModel, Field

from packvault.models.card import Card
from packvault.services.valuation import sell_value


class CardResponse(BaseModel):
    """A catalog card with its current sell value."""

    id: int
    name: str
    team: str | None = None
    region: str | None = None
    defense: int
    offense: int
    mechanics: int
    challenges: int
    game_iq: int
    team_sync: int
    overall_rating: int
    rarity: str
    image_url: str | None = None
    sell_value: int = Field(..., description="Credits paid for selling one copy")

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            name=card.name,
            team=card.team,
            region=card.region,
            defense=card.defense,
            offense=card.offense,
            mechanics=card.mechanics,
            challenges=card.challenges,
            game_iq=card.game_iq,
            team_sync=card.team_sync,
            overall_rating=card.overall_rating,
            rarity=card.rarity.value,
            image_url=card.image_url,
            sell_value=sell_value(card.rarity, card.overall_rating),
        )
