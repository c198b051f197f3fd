"""
Credit claim endpoints.

Daily bonus status and claim, plus the hourly passive accrual tick.
An ineligible claim is a normal 200 response with granted=false.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.api.dependencies import get_clock
from packvault.db.database import get_session, get_session_factory
from packvault.models.results import ClaimResult
from packvault.services.ledger import (
    claim_daily_credits,
    claim_hourly_credits,
    get_daily_claim_status,
    run_in_transaction,
)

router = APIRouter(prefix="/accounts", tags=["claims"])


class ClaimResponse(BaseModel):
    """Outcome of a claim attempt."""

    user_id: str
    granted: bool
    amount: int
    new_balance: int
    next_eligible_at: datetime
    wait_seconds: int

    @classmethod
    def from_result(cls, user_id: str, result: ClaimResult) -> "ClaimResponse":
        return cls(
            user_id=user_id,
            granted=result.granted,
            amount=result.amount,
            new_balance=result.new_balance,
            next_eligible_at=result.next_eligible_at,
            wait_seconds=result.wait_seconds,
        )


class DailyStatusResponse(BaseModel):
    user_id: str
    can_claim: bool
    state: str
    amount: int
    next_eligible_at: datetime
    wait_seconds: int


@router.get("/{user_id}/claims/daily", response_model=DailyStatusResponse)
async def get_daily_status(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    now: Annotated[datetime, Depends(get_clock)],
) -> DailyStatusResponse:
    """Whether the daily bonus is claimable now, and when the next window opens."""
    claim_status = await get_daily_claim_status(session, user_id, now)
    return DailyStatusResponse(
        user_id=user_id,
        can_claim=claim_status.can_claim,
        state=claim_status.state,
        amount=claim_status.amount,
        next_eligible_at=claim_status.next_eligible_at,
        wait_seconds=claim_status.wait_seconds,
    )


@router.post("/{user_id}/claims/daily", response_model=ClaimResponse)
async def claim_daily(
    user_id: str,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> ClaimResponse:
    """
    Claim the daily bonus.

    At most one claim succeeds per claim day, even under concurrent requests.
    """
    result = await run_in_transaction(
        session_factory,
        lambda session: claim_daily_credits(session, user_id, now),
        name="claim_daily",
    )
    return ClaimResponse.from_result(user_id, result)


@router.post("/{user_id}/claims/hourly", response_model=ClaimResponse)
async def claim_hourly(
    user_id: str,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> ClaimResponse:
    """Claim one passive accrual tick if the interval has elapsed."""
    result = await run_in_transaction(
        session_factory,
        lambda session: claim_hourly_credits(session, user_id, now),
        name="claim_hourly",
    )
    return ClaimResponse.from_result(user_id, result)
