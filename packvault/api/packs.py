"""
Pack API endpoints.

Lists the pack catalog, opens packs, and returns a user's opening history.
"""

import random
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.api.dependencies import get_clock, get_rng
from packvault.api.schemas import CardResponse
from packvault.config import PACK_HISTORY_LIMIT, settings
from packvault.db.database import get_session, get_session_factory
from packvault.models.pack import PackType, all_pack_types, pack_rate_description
from packvault.services.ledger import get_pack_history, open_pack, run_in_transaction

router = APIRouter(tags=["packs"])


class PackTypeResponse(BaseModel):
    """A purchasable pack and its drop rates."""

    id: str
    name: str
    price: int
    card_count: int
    description: str
    rates: dict[str, float] = Field(
        default_factory=dict,
        description="Percent chance per card slot for each rarity",
    )
    rate_description: str = ""

    @classmethod
    def from_pack_type(cls, pack_type: PackType) -> "PackTypeResponse":
        return cls(
            id=pack_type.id,
            name=pack_type.name,
            price=pack_type.price,
            card_count=pack_type.card_count,
            description=pack_type.description,
            rates={r.value: w for r, w in pack_type.rarity_table.ordered_weights()},
            rate_description=pack_rate_description(pack_type),
        )


class OpenPackRequest(BaseModel):
    """Request model for opening a pack."""

    pack_type: str = Field(
        default=settings.default_pack_type,
        description="Pack id; unknown ids open the default pack",
        examples=["standard", "premium", "ultimate"],
    )


class OpenPackResponse(BaseModel):
    """Response model for a pack opening."""

    user_id: str
    pack_type: str
    cards: list[CardResponse]
    credits_spent: int
    remaining_credits: int


class PackOpeningResponse(BaseModel):
    pack_type: str
    credits_spent: int
    card_ids: list[int]
    opened_at: datetime


class PackHistoryResponse(BaseModel):
    user_id: str
    openings: list[PackOpeningResponse] = Field(default_factory=list)


@router.get("/packs", response_model=list[PackTypeResponse])
async def list_packs() -> list[PackTypeResponse]:
    """List every pack type in display order."""
    return [PackTypeResponse.from_pack_type(p) for p in all_pack_types()]


@router.post("/accounts/{user_id}/packs/open", response_model=OpenPackResponse)
async def open_user_pack(
    user_id: str,
    request: OpenPackRequest,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
    rng: Annotated[random.Random, Depends(get_rng)],
) -> OpenPackResponse:
    """
    Buy and open a pack.

    The debit, the drawn cards, and the opening record are committed
    together. A rejected purchase changes nothing.
    """
    result = await run_in_transaction(
        session_factory,
        lambda session: open_pack(session, user_id, request.pack_type, now, rng),
        name="open_pack",
    )

    return OpenPackResponse(
        user_id=user_id,
        pack_type=result.pack_type.id,
        cards=[CardResponse.from_card(card) for card in result.cards],
        credits_spent=result.credits_spent,
        remaining_credits=result.remaining_credits,
    )


@router.get("/accounts/{user_id}/packs/history", response_model=PackHistoryResponse)
async def get_user_pack_history(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=PACK_HISTORY_LIMIT)] = PACK_HISTORY_LIMIT,
) -> PackHistoryResponse:
    """Most recent pack openings, newest first."""
    openings = await get_pack_history(session, user_id, limit)
    return PackHistoryResponse(
        user_id=user_id,
        openings=[
            PackOpeningResponse(
                pack_type=o.pack_type,
                credits_spent=o.credits_spent,
                card_ids=o.card_ids,
                opened_at=o.opened_at,
            )
            for o in openings
        ],
    )
