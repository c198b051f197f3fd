"""
Results returned by ledger operations.

These are the typed outcomes of the economy operations; API routers map
them onto response models.
"""

from dataclasses import dataclass, field
from datetime import datetime

from packvault.models.card import Card
from packvault.models.pack import PackType
from packvault.models.task import UserTask


@dataclass(frozen=True, slots=True)
class BalanceView:
    balance: int
    last_credit_earn: datetime


@dataclass(frozen=True)
class PackResult:
    """Cards drawn by a pack opening and the balance left afterwards."""

    pack_type: PackType
    cards: list[Card]
    credits_spent: int
    remaining_credits: int


@dataclass(frozen=True, slots=True)
class SaleResult:
    """
    Outcome of a card sale.

    remaining_quantity is 0 when the ownership record was deleted.
    """

    credits_earned: int
    new_balance: int
    remaining_quantity: int


@dataclass(frozen=True, slots=True)
class ClaimResult:
    """
    Outcome of a daily or hourly claim.

    An ineligible claim is not an error: granted is False, amount is 0,
    and wait_seconds says how long until the next window opens.
    """

    granted: bool
    amount: int
    new_balance: int
    next_eligible_at: datetime
    wait_seconds: int


@dataclass(frozen=True, slots=True)
class SaleRecord:
    card_id: int
    card_name: str
    rarity: str
    quantity: int
    credits_earned: int
    sold_at: datetime


@dataclass(frozen=True)
class SaleHistory:
    total_sold: int
    total_credits_earned: int
    recent_sales: list[SaleRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CollectionStats:
    """Aggregate view of a user's inventory."""

    total_cards: int
    unique_cards: int
    packs_opened: int
    by_rarity: dict[str, int] = field(default_factory=dict)
    super_collected: int = 0
    super_total: int = 0

    @property
    def super_percentage(self) -> int:
        """Share of catalog Super cards owned, rounded to a whole percent."""
        if self.super_total == 0:
            return 0
        return round(self.super_collected / self.super_total * 100)


@dataclass(frozen=True, slots=True)
class ClaimStatus:
    """Read-only view of daily claim eligibility."""

    can_claim: bool
    state: str
    amount: int
    next_eligible_at: datetime
    wait_seconds: int


@dataclass(frozen=True)
class TaskBoard:
    """Every reward task with the user's progress, plus how many await a claim."""

    tasks: list[UserTask]
    unclaimed_count: int


@dataclass(frozen=True)
class TaskClaimResult:
    """
    Outcome of claiming one or more task rewards.

    task_ids is empty (and credits_earned 0) when nothing was claimable.
    """

    task_ids: list[str]
    credits_earned: int
    new_balance: int
