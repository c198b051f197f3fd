"""
Account API endpoints.

Registers accounts and serves balance, inventory, and collection stats.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.api.dependencies import get_clock
from packvault.api.schemas import CardResponse
from packvault.db.database import get_session, get_session_factory
from packvault.models.pack import affordable_pack_count, all_pack_types
from packvault.services.ledger import (
    create_account,
    get_balance,
    get_collection_stats,
    get_inventory,
    run_in_transaction,
)

router = APIRouter(prefix="/accounts", tags=["accounts"])


class AccountResponse(BaseModel):
    """Response model for a newly created account."""

    user_id: str
    balance: int
    last_credit_earn: datetime
    packs_opened: int = 0


class BalanceResponse(BaseModel):
    """Response model for a balance lookup."""

    user_id: str
    balance: int
    last_credit_earn: datetime
    packs_affordable: dict[str, int] = Field(
        default_factory=dict,
        description="How many packs of each type the balance covers",
    )


class OwnedCardResponse(BaseModel):
    card: CardResponse
    quantity: int
    acquired_at: datetime


class CollectionStatsResponse(BaseModel):
    """Aggregate counts over a user's inventory."""

    total_cards: int = 0
    unique_cards: int = 0
    packs_opened: int = 0
    by_rarity: dict[str, int] = Field(
        default_factory=dict,
        description="Copies owned per rarity (Super, Epic, Rare, Common)",
    )
    super_collected: int = 0
    super_total: int = 0
    super_percentage: int = 0


class InventoryResponse(BaseModel):
    """Response model for a user's inventory."""

    user_id: str
    cards: list[OwnedCardResponse] = Field(default_factory=list)
    stats: CollectionStatsResponse


@router.post(
    "/{user_id}",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_user_account(
    user_id: str,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> AccountResponse:
    """
    Register an account with the starter balance.

    Fails with 409 if the user already has one.
    """
    account = await run_in_transaction(
        session_factory,
        lambda session: create_account(session, user_id, now),
        name="create_account",
    )
    return AccountResponse(
        user_id=account.user_id,
        balance=account.balance,
        last_credit_earn=account.last_credit_earn,
        packs_opened=account.packs_opened,
    )


@router.get("/{user_id}/balance", response_model=BalanceResponse)
async def get_user_balance(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BalanceResponse:
    """Current balance, last passive-earn time, and how many packs it buys."""
    view = await get_balance(session, user_id)
    return BalanceResponse(
        user_id=user_id,
        balance=view.balance,
        last_credit_earn=view.last_credit_earn,
        packs_affordable={p.id: affordable_pack_count(view.balance, p) for p in all_pack_types()},
    )


@router.get("/{user_id}/inventory", response_model=InventoryResponse)
async def get_user_inventory(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> InventoryResponse:
    """
    Get a user's owned cards with collection stats.

    Cards are ordered rarest first, then by overall rating.
    """
    inventory = await get_inventory(session, user_id)
    stats = await get_collection_stats(session, user_id)

    return InventoryResponse(
        user_id=user_id,
        cards=[
            OwnedCardResponse(
                card=CardResponse.from_card(owned.card),
                quantity=owned.quantity,
                acquired_at=owned.acquired_at,
            )
            for owned in inventory
        ],
        stats=CollectionStatsResponse(
            total_cards=stats.total_cards,
            unique_cards=stats.unique_cards,
            packs_opened=stats.packs_opened,
            by_rarity=stats.by_rarity,
            super_collected=stats.super_collected,
            super_total=stats.super_total,
            super_percentage=stats.super_percentage,
        ),
    )
