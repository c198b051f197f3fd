"""
Failure classification for the economy API.

Every rejected operation is raised as a KnownError subclass and leaves
balances and inventories exactly as they were before the call. The
application's exception handler converts these into an ApiResponse
envelope with the error's HTTP status.

Error categories:
- Validation: malformed input or unknown card, rejected before mutation
- Insufficient resource: not enough credits or owned copies; reports the
  actual available amount so the caller can adjust
- Task reward: claiming a reward that is not (or no longer) claimable
- Concurrency conflict: lock contention or a lost conditional update;
  safe to retry the whole operation
- Catalog configuration: no card pool to draw from; fatal for the pack
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Insufficient resources
    INSUFFICIENT_CREDITS = "insufficient_credits"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"

    # Task rewards
    TASK_INCOMPLETE = "task_incomplete"

    # Transaction failures
    CONCURRENCY_CONFLICT = "concurrency_conflict"

    # Configuration failures
    CATALOG_MISCONFIGURED = "catalog_misconfigured"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    KNOWN_FAILURE = "known_failure"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )
    available: int | None = Field(
        default=None,
        description="Actual available amount for insufficient-resource failures",
    )


class ApiResponse(BaseModel):
    """Response envelope for failed operations."""

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    failure: FailureDetail = Field(
        ...,
        description="What went wrong",
    )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        available: int | None = None,
    ) -> "ApiResponse":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
                available=available,
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    @property
    def available(self) -> int | None:
        """Available amount reported to the caller, if any."""
        return None

    def to_response(self) -> ApiResponse:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            available=self.available,
        )


# =============================================================================
# VALIDATION
# =============================================================================


class InvalidQuantityError(KnownError):
    """Raised when a sell quantity is below 1."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="Quantity must be at least 1.",
            detail=f"quantity={quantity}",
            status_code=400,
        )


class CardNotFoundError(KnownError):
    """Raised when a card id does not exist in the catalog."""

    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Card {card_id} does not exist.",
            status_code=404,
        )


class AccountNotFoundError(KnownError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"No account found for user '{user_id}'.",
            suggestion="Create an account before opening packs or claiming credits.",
            status_code=404,
        )


class AccountExistsError(KnownError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            kind=FailureKind.CONFLICT,
            message=f"An account already exists for user '{user_id}'.",
            status_code=409,
        )


# =============================================================================
# INSUFFICIENT RESOURCES
# =============================================================================


class InsufficientCreditsError(KnownError):
    """
    Raised when a balance cannot cover a debit.

    Raised before any mutation; no partial debit is ever applied.
    """

    def __init__(self, required: int, available: int):
        self.required = required
        self._available = available
        super().__init__(
            kind=FailureKind.INSUFFICIENT_CREDITS,
            message=(
                f"Not enough credits! You need {required} credits but only have {available}."
            ),
            detail=f"required={required} available={available}",
            suggestion="Claim your daily bonus or sell duplicate cards.",
            status_code=400,
        )

    @property
    def available(self) -> int:
        return self._available


class InsufficientQuantityError(KnownError):
    """
    Raised when a sale asks for more copies than are owned.

    No partial sale is performed.
    """

    def __init__(
        self,
        card_id: int,
        requested: int,
        available: int,
        message: str | None = None,
        status_code: int = 400,
    ):
        self.card_id = card_id
        self.requested = requested
        self._available = available
        super().__init__(
            kind=FailureKind.INSUFFICIENT_QUANTITY,
            message=message or f"You only have {available} copies of this card.",
            detail=f"card_id={card_id} requested={requested} available={available}",
            status_code=status_code,
        )

    @property
    def available(self) -> int:
        return self._available


class CardNotOwnedError(InsufficientQuantityError):
    """Raised when selling a card that is not in the user's inventory."""

    def __init__(self, card_id: int, requested: int):
        super().__init__(
            card_id=card_id,
            requested=requested,
            available=0,
            message="Card not found in collection.",
            status_code=404,
        )


# =============================================================================
# TASK REWARDS
# =============================================================================


class TaskNotFoundError(KnownError):
    """Raised when a task id is not a configured reward task."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Task '{task_id}' does not exist.",
            status_code=404,
        )


class TaskNotCompletedError(KnownError):
    """Raised when claiming the reward of a task that is still open."""

    def __init__(self, task_id: str, progress: int, target: int):
        self.task_id = task_id
        self.progress = progress
        self.target = target
        super().__init__(
            kind=FailureKind.TASK_INCOMPLETE,
            message="This task is not completed yet.",
            detail=f"task_id={task_id} progress={progress} target={target}",
            status_code=400,
        )


class TaskAlreadyClaimedError(KnownError):
    """Raised when a task reward has already been claimed."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            kind=FailureKind.CONFLICT,
            message="This task reward has already been claimed.",
            detail=f"task_id={task_id}",
            status_code=409,
        )


# =============================================================================
# TRANSACTIONS & CONFIGURATION
# =============================================================================


class ConcurrencyConflictError(KnownError):
    """
    Raised when an operation lost a race for an account row.

    Nothing was committed, so the whole operation can be retried.
    """

    def __init__(self, operation: str, attempts: int, detail: str | None = None):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            kind=FailureKind.CONCURRENCY_CONFLICT,
            message="Another request for this account is in progress.",
            detail=detail or f"{operation} gave up after {attempts} attempt(s)",
            suggestion="Retry the request.",
            status_code=409,
        )


class CatalogConfigurationError(KnownError):
    """
    Raised when a pack cannot be filled from the catalog.

    Never degrades into returning fewer cards than requested.
    """

    def __init__(self, detail: str):
        super().__init__(
            kind=FailureKind.CATALOG_MISCONFIGURED,
            message="Packs are unavailable because the card catalog is empty.",
            detail=detail,
            suggestion="Import the card catalog and try again.",
            status_code=503,
        )
