"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
Ledger code reads and writes these rows only through db.operations,
which maps them onto the typed domain records.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    A catalog card.

    Read-only to the economy; populated by the catalog import job.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    team: Mapped[str | None] = mapped_column(String(255), nullable=True)
    region: Mapped[str | None] = mapped_column(String(50), nullable=True)

    defense: Mapped[int] = mapped_column(Integer)
    offense: Mapped[int] = mapped_column(Integer)
    mechanics: Mapped[int] = mapped_column(Integer)
    challenges: Mapped[int] = mapped_column(Integer)
    game_iq: Mapped[int] = mapped_column(Integer)
    team_sync: Mapped[int] = mapped_column(Integer)
    overall_rating: Mapped[int] = mapped_column(Integer, index=True)

    rarity: Mapped[str] = mapped_column(String(20), index=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, name={self.name}, rarity={self.rarity})>"


class AccountDB(Base):
    """
    A user's credit account.

    Balance is only changed through conditional UPDATE statements so that
    concurrent requests for the same account cannot lose updates.
    """

    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    balance: Mapped[int] = mapped_column(Integer, default=0)

    last_credit_earn: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_daily_claim: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    packs_opened: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationship to card ownership records
    cards: Mapped[list["OwnedCardDB"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<AccountDB(user_id={self.user_id}, balance={self.balance})>"


class OwnedCardDB(Base):
    """
    Individual card ownership record.

    Tracks how many copies of a catalog card a user owns. A record whose
    quantity would reach zero is deleted instead.
    """

    __tablename__ = "owned_cards"
    __table_args__ = (
        UniqueConstraint("user_id", "card_id", name="uq_owned_user_card"),
        CheckConstraint("quantity > 0", name="ck_owned_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), index=True
    )
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    account: Mapped["AccountDB"] = relationship(back_populates="cards")
    card: Mapped["CardDB"] = relationship()

    def __repr__(self) -> str:
        return f"<OwnedCardDB(user_id={self.user_id}, card={self.card_id}, qty={self.quantity})>"


class PackOpeningDB(Base):
    """Append-only history of pack openings."""

    __tablename__ = "pack_openings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), index=True
    )
    pack_type: Mapped[str] = mapped_column(String(50))
    credits_spent: Mapped[int] = mapped_column(Integer)

    # Ordered card ids, duplicates included
    card_ids: Mapped[list[Any]] = mapped_column(JSON, default=list)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<PackOpeningDB(user_id={self.user_id}, pack_type={self.pack_type})>"


class CardSaleDB(Base):
    """Append-only history of card sales."""

    __tablename__ = "card_sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), index=True
    )
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"))
    quantity_sold: Mapped[int] = mapped_column(Integer)
    credits_earned: Mapped[int] = mapped_column(Integer)
    sold_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    card: Mapped["CardDB"] = relationship()

    def __repr__(self) -> str:
        return f"<CardSaleDB(user_id={self.user_id}, card={self.card_id})>"


class DailyClaimDB(Base):
    """
    One row per granted daily bonus.

    The unique (user_id, claim_date) pair rejects a second grant for the
    same claim day even if two transactions race past the eligibility check.
    """

    __tablename__ = "daily_claims"
    __table_args__ = (UniqueConstraint("user_id", "claim_date", name="uq_daily_claim_user_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), index=True
    )
    claim_date: Mapped[date] = mapped_column(Date)
    credits_claimed: Mapped[int] = mapped_column(Integer)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<DailyClaimDB(user_id={self.user_id}, claim_date={self.claim_date})>"


class UserTaskDB(Base):
    """
    A user's progress on one reward task.

    Rows are created the first time an event advances the user's tasks.
    completed and claimed only ever flip from False to True, each through a
    conditional UPDATE, so a reward can be claimed at most once.
    """

    __tablename__ = "user_tasks"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_user_task"),
        CheckConstraint("progress >= 0", name="ck_user_task_progress_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), index=True
    )
    task_id: Mapped[str] = mapped_column(String(50))
    progress: Mapped[int] = mapped_column(Integer, default=0)

    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed: Mapped[bool] = mapped_column(Boolean, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserTaskDB(user_id={self.user_id}, task={self.task_id})>"
