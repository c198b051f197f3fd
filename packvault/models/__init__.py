from packvault.models.account import Account, CardSale, OwnedCard, PackOpening
from packvault.models.card import RARITY_ORDER, Card, Rarity
from packvault.models.failure import (
    AccountExistsError,
    AccountNotFoundError,
    ApiResponse,
    CardNotFoundError,
    CardNotOwnedError,
    CatalogConfigurationError,
    ConcurrencyConflictError,
    FailureDetail,
    FailureKind,
    InsufficientCreditsError,
    InsufficientQuantityError,
    InvalidQuantityError,
    KnownError,
    OutcomeType,
    TaskAlreadyClaimedError,
    TaskNotCompletedError,
    TaskNotFoundError,
)
from packvault.models.pack import (
    PACK_TYPES,
    PackType,
    RarityTable,
    affordable_pack_count,
    all_pack_types,
    get_pack_type,
    pack_rate_description,
    resolve_pack_type,
)
from packvault.models.results import (
    BalanceView,
    ClaimResult,
    ClaimStatus,
    CollectionStats,
    PackResult,
    SaleHistory,
    SaleRecord,
    SaleResult,
    TaskBoard,
    TaskClaimResult,
)
from packvault.models.task import (
    TASKS,
    TaskDefinition,
    TaskDifficulty,
    TaskType,
    UserTask,
    get_task,
    tasks_of_type,
)

__all__ = [
    "Account",
    "AccountExistsError",
    "AccountNotFoundError",
    "ApiResponse",
    "BalanceView",
    "Card",
    "CardNotFoundError",
    "CardNotOwnedError",
    "CardSale",
    "CatalogConfigurationError",
    "ClaimResult",
    "ClaimStatus",
    "CollectionStats",
    "ConcurrencyConflictError",
    "FailureDetail",
    "FailureKind",
    "InsufficientCreditsError",
    "InsufficientQuantityError",
    "InvalidQuantityError",
    "KnownError",
    "OutcomeType",
    "OwnedCard",
    "PACK_TYPES",
    "PackOpening",
    "PackResult",
    "PackType",
    "RARITY_ORDER",
    "Rarity",
    "RarityTable",
    "SaleHistory",
    "SaleRecord",
    "SaleResult",
    "TASKS",
    "TaskAlreadyClaimedError",
    "TaskBoard",
    "TaskClaimResult",
    "TaskDefinition",
    "TaskDifficulty",
    "TaskNotCompletedError",
    "TaskNotFoundError",
    "TaskType",
    "UserTask",
    "affordable_pack_count",
    "all_pack_types",
    "get_pack_type",
    "get_task",
    "pack_rate_description",
    "resolve_pack_type",
    "tasks_of_type",
]
