"""
Reward task endpoints.

Lists the reward tasks with a user's progress and claims completed
rewards. Progress itself is advanced by pack openings and card sales.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.api.dependencies import get_clock
from packvault.db.database import get_session, get_session_factory
from packvault.models.results import TaskClaimResult
from packvault.models.task import UserTask
from packvault.services.ledger import (
    claim_all_task_rewards,
    claim_task_reward,
    get_task_board,
    run_in_transaction,
)

router = APIRouter(prefix="/accounts", tags=["tasks"])


class TaskResponse(BaseModel):
    """A reward task with the user's progress."""

    id: str
    title: str
    description: str
    task_type: str
    difficulty: str
    target: int
    reward_credits: int
    progress: int
    completed: bool
    claimed: bool
    claimable: bool
    completed_at: datetime | None = None
    claimed_at: datetime | None = None

    @classmethod
    def from_user_task(cls, user_task: UserTask) -> "TaskResponse":
        task = user_task.task
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            task_type=task.task_type.value,
            difficulty=task.difficulty.value,
            target=task.target,
            reward_credits=task.reward_credits,
            progress=user_task.progress,
            completed=user_task.completed,
            claimed=user_task.claimed,
            claimable=user_task.claimable,
            completed_at=user_task.completed_at,
            claimed_at=user_task.claimed_at,
        )


class TaskBoardResponse(BaseModel):
    user_id: str
    tasks: list[TaskResponse]
    unclaimed_count: int


class TaskClaimResponse(BaseModel):
    """Rewards credited by a claim."""

    user_id: str
    task_ids: list[str]
    credits_earned: int
    new_balance: int

    @classmethod
    def from_result(cls, user_id: str, result: TaskClaimResult) -> "TaskClaimResponse":
        return cls(
            user_id=user_id,
            task_ids=result.task_ids,
            credits_earned=result.credits_earned,
            new_balance=result.new_balance,
        )


@router.get("/{user_id}/tasks", response_model=TaskBoardResponse)
async def list_tasks(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TaskBoardResponse:
    """All reward tasks, open ones first, with progress toward each."""
    board = await get_task_board(session, user_id)
    return TaskBoardResponse(
        user_id=user_id,
        tasks=[TaskResponse.from_user_task(t) for t in board.tasks],
        unclaimed_count=board.unclaimed_count,
    )


@router.post("/{user_id}/tasks/claim-all", response_model=TaskClaimResponse)
async def claim_all_tasks(
    user_id: str,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> TaskClaimResponse:
    """Claim every completed task reward at once."""
    result = await run_in_transaction(
        session_factory,
        lambda session: claim_all_task_rewards(session, user_id, now),
        name="claim_all_tasks",
    )
    return TaskClaimResponse.from_result(user_id, result)


@router.post("/{user_id}/tasks/{task_id}/claim", response_model=TaskClaimResponse)
async def claim_task(
    user_id: str,
    task_id: str,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    now: Annotated[datetime, Depends(get_clock)],
) -> TaskClaimResponse:
    """
    Claim one completed task's reward.

    A reward can be claimed once; a second claim is rejected with 409.
    """
    result = await run_in_transaction(
        session_factory,
        lambda session: claim_task_reward(session, user_id, task_id, now),
        name="claim_task",
    )
    return TaskClaimResponse.from_result(user_id, result)
