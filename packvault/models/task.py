"""
Reward task configuration.

Tasks are static like pack types: defined here, loaded once, never mutated
at runtime. Per-user progress lives in the user_tasks table.

Progress sources:
- packs: +1 per pack opened
- cards: +1 per Rare-or-better card pulled from a pack
- collection: set to the number of distinct cards owned
- selling: +quantity per sale
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from packvault.models.card import Rarity


class TaskType(str, Enum):
    """What a task counts."""

    PACKS = "packs"
    CARDS = "cards"
    COLLECTION = "collection"
    SELLING = "selling"


class TaskDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


DIFFICULTY_ORDER: tuple[TaskDifficulty, ...] = tuple(TaskDifficulty)

# Pulls of these rarities count toward CARDS tasks
TASK_CARD_RARITIES = frozenset({Rarity.SUPER, Rarity.EPIC, Rarity.RARE})


@dataclass(frozen=True, slots=True)
class TaskDefinition:
    """
    A one-time reward task.

    Attributes:
        id: Stable task identifier, used in URLs and the user_tasks table
        title: Display title
        description: What the user has to do
        task_type: Which economy event advances progress
        target: Progress needed to complete the task
        reward_credits: Credits granted when the reward is claimed
        difficulty: Display grouping and sort key
    """

    id: str
    title: str
    description: str
    task_type: TaskType
    target: int
    reward_credits: int
    difficulty: TaskDifficulty


TASKS: dict[str, TaskDefinition] = {
    "first_pack": TaskDefinition(
        id="first_pack",
        title="First Pack",
        description="Open your first pack",
        task_type=TaskType.PACKS,
        target=1,
        reward_credits=100,
        difficulty=TaskDifficulty.EASY,
    ),
    "pack_regular": TaskDefinition(
        id="pack_regular",
        title="Pack Regular",
        description="Open 10 packs",
        task_type=TaskType.PACKS,
        target=10,
        reward_credits=500,
        difficulty=TaskDifficulty.MEDIUM,
    ),
    "pack_addict": TaskDefinition(
        id="pack_addict",
        title="Pack Addict",
        description="Open 50 packs",
        task_type=TaskType.PACKS,
        target=50,
        reward_credits=2000,
        difficulty=TaskDifficulty.HARD,
    ),
    "rare_finder": TaskDefinition(
        id="rare_finder",
        title="Rare Finder",
        description="Pull 5 Rare or better cards",
        task_type=TaskType.CARDS,
        target=5,
        reward_credits=150,
        difficulty=TaskDifficulty.EASY,
    ),
    "big_puller": TaskDefinition(
        id="big_puller",
        title="Big Puller",
        description="Pull 25 Rare or better cards",
        task_type=TaskType.CARDS,
        target=25,
        reward_credits=750,
        difficulty=TaskDifficulty.MEDIUM,
    ),
    "starter_collection": TaskDefinition(
        id="starter_collection",
        title="Starter Collection",
        description="Own 10 different cards",
        task_type=TaskType.COLLECTION,
        target=10,
        reward_credits=200,
        difficulty=TaskDifficulty.EASY,
    ),
    "serious_collector": TaskDefinition(
        id="serious_collector",
        title="Serious Collector",
        description="Own 50 different cards",
        task_type=TaskType.COLLECTION,
        target=50,
        reward_credits=1000,
        difficulty=TaskDifficulty.HARD,
    ),
    "completionist": TaskDefinition(
        id="completionist",
        title="Completionist",
        description="Own 150 different cards",
        task_type=TaskType.COLLECTION,
        target=150,
        reward_credits=5000,
        difficulty=TaskDifficulty.EXPERT,
    ),
    "first_sale": TaskDefinition(
        id="first_sale",
        title="First Sale",
        description="Sell a card",
        task_type=TaskType.SELLING,
        target=1,
        reward_credits=50,
        difficulty=TaskDifficulty.EASY,
    ),
    "merchant": TaskDefinition(
        id="merchant",
        title="Merchant",
        description="Sell 25 cards",
        task_type=TaskType.SELLING,
        target=25,
        reward_credits=400,
        difficulty=TaskDifficulty.MEDIUM,
    ),
}


def get_task(task_id: str) -> TaskDefinition | None:
    """Get a task by id. Returns None if unknown."""
    return TASKS.get(task_id)


def tasks_of_type(task_type: TaskType) -> list[TaskDefinition]:
    """All tasks advanced by one kind of event, in definition order."""
    return [task for task in TASKS.values() if task.task_type is task_type]


@dataclass(frozen=True)
class UserTask:
    """
    A user's progress on one task.

    progress never exceeds the task target. A task is claimable once it is
    completed and its reward has not been claimed.
    """

    task: TaskDefinition
    progress: int = 0
    completed: bool = False
    claimed: bool = False
    completed_at: datetime | None = None
    claimed_at: datetime | None = None

    @property
    def claimable(self) -> bool:
        return self.completed and not self.claimed


def task_sort_key(user_task: UserTask) -> tuple[bool, bool, int, int]:
    """Open tasks first, then unclaimed, then by difficulty and definition order."""
    definition_order = list(TASKS).index(user_task.task.id)
    return (
        user_task.completed,
        user_task.claimed,
        DIFFICULTY_ORDER.index(user_task.task.difficulty),
        definition_order,
    )
