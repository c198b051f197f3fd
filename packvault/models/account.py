from dataclasses import dataclass, field
from datetime import datetime

from packvault.models.card import Card


@dataclass
class Account:
    """
    A user's credit account.

    Only the ledger mutates balance. A None last_daily_claim means the
    daily bonus has never been claimed.
    """

    user_id: str
    balance: int
    last_credit_earn: datetime
    last_daily_claim: datetime | None = None
    packs_opened: int = 0
    created_at: datetime | None = None


@dataclass
class OwnedCard:
    """
    Ownership of one catalog card.

    Quantity is strictly positive while the record exists. acquired_at is
    set when the record is first created and never updated.
    """

    user_id: str
    card: Card
    quantity: int
    acquired_at: datetime | None = None


@dataclass(frozen=True)
class PackOpening:
    """Append-only record of a pack opening."""

    user_id: str
    pack_type: str
    credits_spent: int
    card_ids: list[int] = field(default_factory=list)
    opened_at: datetime | None = None


@dataclass(frozen=True)
class CardSale:
    """Append-only record of a card sale."""

    user_id: str
    card_id: int
    quantity: int
    credits_earned: int
    sold_at: datetime | None = None
