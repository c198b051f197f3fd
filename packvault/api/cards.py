"""
Card API endpoints.

Card lookup with sell value, selling owned copies, and sale history.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.api.dependencies import get_clock
from packvault.api.schemas import CardResponse
from packvault.config import SALE_HISTORY_LIMIT
from packvault.db import card_to_model, get_card
from packvault.db.database import get_session, get_session_factory
from packvault.models.failure import CardNotFoundError
from packvault.services.ledger import get_sale_history, run_in_transaction, sell_cards
from packvault.services.valuation import base_value, rating_multiplier

router = APIRouter(tags=["cards"])


class CardValueResponse(BaseModel):
    """A card and how its sell value is derived."""

    card: CardResponse
    base_value: int
    rating_multiplier: float
    sell_value: int


class SellRequest(BaseModel):
    """Request model for selling copies of an owned card."""

    quantity: int = Field(
        default=1,
        description="Copies to sell; must be at least 1",
        examples=[1],
    )


class SellResponse(BaseModel):
    user_id: str
    card_id: int
    quantity_sold: int
    credits_earned: int
    new_balance: int
    remaining_quantity: int


class SaleRecordResponse(BaseModel):
    card_id: int
    card_name: str
    rarity: str
    quantity: int
    credits_earned: int
    sold_at: datetime


class SaleHistoryResponse(BaseModel):
    """Lifetime sale totals and the most recent sales."""

    user_id: str
    total_sold: int = 0
    total_credits_earned: int = 0
    recent_sales: list[SaleRecordResponse] = Field(default_factory=list)


@router.get("/cards/{card_id}/value", response_model=CardValueResponse)
async def get_card_value(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardValueResponse:
    """Sell value of one copy of a catalog card."""
    db_card = await get_card(session, card_id)
    if db_card is None:
        raise CardNotFoundError(card_id)

    card = card_to_model(db_card)
    response_card = CardResponse.from_card(card)
    return CardValueResponse(
        card=response_card,
        base_value=base_value(card.rarity),
        rating_multiplier=rating_multiplier(card.overall_rating),
        sell_value=response_card.sell_value,
    )


@router.post("/accounts/{user_id}/cards/{card_id}/sell", response_model=SellResponse)
async def sell_user_cards(
    user_id: str,
    card_id: int,
    request: SellRequest,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> SellResponse:
    """
    Sell copies of an owned card for credits.

    Selling every copy removes the card from the inventory. A sale that
    asks for more copies than owned changes nothing.
    """
    result = await run_in_transaction(
        session_factory,
        lambda session: sell_cards(session, user_id, card_id, request.quantity, now),
        name="sell_cards",
    )
    return SellResponse(
        user_id=user_id,
        card_id=card_id,
        quantity_sold=request.quantity,
        credits_earned=result.credits_earned,
        new_balance=result.new_balance,
        remaining_quantity=result.remaining_quantity,
    )


@router.get("/accounts/{user_id}/sales", response_model=SaleHistoryResponse)
async def get_user_sales(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=100)] = SALE_HISTORY_LIMIT,
) -> SaleHistoryResponse:
    """Lifetime sale totals and the most recent sales, newest first."""
    history = await get_sale_history(session, user_id, limit)
    return SaleHistoryResponse(
        user_id=user_id,
        total_sold=history.total_sold,
        total_credits_earned=history.total_credits_earned,
        recent_sales=[
            SaleRecordResponse(
                card_id=s.card_id,
                card_name=s.card_name,
                rarity=s.rarity,
                quantity=s.quantity,
                credits_earned=s.credits_earned,
                sold_at=s.sold_at,
            )
            for s in history.recent_sales
        ],
    )
