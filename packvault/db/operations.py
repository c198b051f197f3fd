"""
Database CRUD operations.

Provides async functions for reading and writing catalog cards, accounts,
owned cards, and the append-only history tables.

Balance and quantity changes are expressed as conditional UPDATE
statements (`... WHERE balance >= :price`) so that the check and the write
happen in one statement. A rowcount of 0 means the precondition did not hold
at the moment the row was locked.
"""

from collections import Counter
from datetime import date, datetime

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from packvault.models.account import Account, CardSale, OwnedCard, PackOpening
from packvault.models.card import Card, Rarity
from packvault.models.db import (
    AccountDB,
    CardDB,
    CardSaleDB,
    DailyClaimDB,
    OwnedCardDB,
    PackOpeningDB,
    UserTaskDB,
)
from packvault.models.results import SaleRecord
from packvault.models.task import TaskDefinition, UserTask
from packvault.services.catalog import CardCatalog
from packvault.services.claims import as_utc


def _rowcount(result: object) -> int:
    # rowcount is available on UPDATE/DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


# --- Catalog Operations ---


def card_to_model(db_card: CardDB) -> Card:
    """Convert a database card to a domain model."""
    return Card(
        id=db_card.id,
        name=db_card.name,
        defense=db_card.defense,
        offense=db_card.offense,
        mechanics=db_card.mechanics,
        challenges=db_card.challenges,
        game_iq=db_card.game_iq,
        team_sync=db_card.team_sync,
        overall_rating=db_card.overall_rating,
        rarity=Rarity(db_card.rarity),
        team=db_card.team,
        region=db_card.region,
        image_url=db_card.image_url,
    )


async def get_card(session: AsyncSession, card_id: int) -> CardDB | None:
    """Get a catalog card by id. Returns None if not found."""
    return await session.get(CardDB, card_id)


async def load_catalog(session: AsyncSession) -> CardCatalog:
    """Load the full card catalog."""
    result = await session.execute(select(CardDB).order_by(CardDB.id))
    return CardCatalog(card_to_model(c) for c in result.scalars().all())


async def count_cards_by_rarity(session: AsyncSession) -> dict[str, int]:
    """Number of catalog cards per rarity."""
    result = await session.execute(select(CardDB.rarity, func.count()).group_by(CardDB.rarity))
    return {rarity: int(count) for rarity, count in result.all()}


async def upsert_card(session: AsyncSession, card: Card) -> CardDB:
    """
    Insert or update a catalog card.

    If a card with the same id exists, updates it.
    Otherwise creates a new record.
    """
    existing = await get_card(session, card.id)
    db_card = existing or CardDB(id=card.id)

    db_card.name = card.name
    db_card.team = card.team
    db_card.region = card.region
    db_card.defense = card.defense
    db_card.offense = card.offense
    db_card.mechanics = card.mechanics
    db_card.challenges = card.challenges
    db_card.game_iq = card.game_iq
    db_card.team_sync = card.team_sync
    db_card.overall_rating = card.overall_rating
    db_card.rarity = card.rarity.value
    db_card.image_url = card.image_url

    if existing is None:
        session.add(db_card)
    await session.flush()
    return db_card


# --- Account Operations ---


def account_to_model(db_account: AccountDB) -> Account:
    """Convert a database account to a domain model."""
    return Account(
        user_id=db_account.user_id,
        balance=db_account.balance,
        last_credit_earn=as_utc(db_account.last_credit_earn),
        last_daily_claim=(
            as_utc(db_account.last_daily_claim) if db_account.last_daily_claim else None
        ),
        packs_opened=db_account.packs_opened,
        created_at=as_utc(db_account.created_at) if db_account.created_at else None,
    )


async def get_account(session: AsyncSession, user_id: str) -> AccountDB | None:
    """
    Get an account by user_id.

    Always reloads from the database so values written by conditional
    UPDATE statements are visible.
    """
    result = await session.execute(
        select(AccountDB)
        .where(AccountDB.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_account(
    session: AsyncSession, user_id: str, balance: int, now: datetime
) -> AccountDB:
    """
    Create a new account for a user.

    Raises IntegrityError if an account already exists.
    """
    account = AccountDB(
        user_id=user_id,
        balance=balance,
        last_credit_earn=now,
        last_daily_claim=None,
        packs_opened=0,
        created_at=now,
    )
    session.add(account)
    await session.flush()
    return account


async def debit_for_pack(session: AsyncSession, user_id: str, price: int) -> bool:
    """
    Debit a pack price and bump the packs-opened counter.

    Returns False (and changes nothing) if the account is missing or the
    balance is below the price.
    """
    result = await session.execute(
        update(AccountDB)
        .where(AccountDB.user_id == user_id, AccountDB.balance >= price)
        .values(
            balance=AccountDB.balance - price,
            packs_opened=AccountDB.packs_opened + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1


async def credit_balance(session: AsyncSession, user_id: str, amount: int) -> bool:
    """Add credits to an account. Returns False if the account is missing."""
    result = await session.execute(
        update(AccountDB)
        .where(AccountDB.user_id == user_id)
        .values(balance=AccountDB.balance + amount)
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1


async def apply_daily_claim(
    session: AsyncSession,
    user_id: str,
    amount: int,
    now: datetime,
    window_start: datetime,
) -> bool:
    """
    Grant the daily bonus if the account has not claimed since `window_start`.

    Eligibility check and write are one statement, so of two concurrent
    claims for the same window only one can match.
    """
    result = await session.execute(
        update(AccountDB)
        .where(
            AccountDB.user_id == user_id,
            or_(
                AccountDB.last_daily_claim.is_(None),
                AccountDB.last_daily_claim < window_start,
            ),
        )
        .values(balance=AccountDB.balance + amount, last_daily_claim=now)
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1


async def apply_hourly_accrual(
    session: AsyncSession,
    user_id: str,
    amount: int,
    now: datetime,
    earned_before: datetime,
) -> bool:
    """Grant one accrual tick if the last accrual is at or before `earned_before`."""
    result = await session.execute(
        update(AccountDB)
        .where(
            AccountDB.user_id == user_id,
            AccountDB.last_credit_earn <= earned_before,
        )
        .values(balance=AccountDB.balance + amount, last_credit_earn=now)
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1


# --- Owned Card Operations ---


def owned_card_to_model(db_owned: OwnedCardDB) -> OwnedCard:
    """Convert a database ownership record to a domain model. Requires `card` loaded."""
    return OwnedCard(
        user_id=db_owned.user_id,
        card=card_to_model(db_owned.card),
        quantity=db_owned.quantity,
        acquired_at=as_utc(db_owned.acquired_at) if db_owned.acquired_at else None,
    )


async def get_owned_card(session: AsyncSession, user_id: str, card_id: int) -> OwnedCardDB | None:
    result = await session.execute(
        select(OwnedCardDB)
        .where(OwnedCardDB.user_id == user_id, OwnedCardDB.card_id == card_id)
        .options(selectinload(OwnedCardDB.card))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_owned_cards(session: AsyncSession, user_id: str) -> list[OwnedCardDB]:
    """All ownership records for a user, with cards loaded."""
    result = await session.execute(
        select(OwnedCardDB)
        .where(OwnedCardDB.user_id == user_id)
        .options(selectinload(OwnedCardDB.card))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def count_distinct_owned(session: AsyncSession, user_id: str) -> int:
    """Number of different cards a user owns."""
    result = await session.scalar(
        select(func.count()).select_from(OwnedCardDB).where(OwnedCardDB.user_id == user_id)
    )
    return int(result or 0)


async def add_owned_cards(
    session: AsyncSession,
    user_id: str,
    card_ids: list[int],
    now: datetime,
) -> None:
    """
    Add cards to a user's inventory.

    Increments existing records and creates missing ones. acquired_at is
    only set on creation. Concurrent creation of the same record surfaces
    as IntegrityError on flush.
    """
    counts = Counter(card_ids)
    if not counts:
        return

    result = await session.execute(
        select(OwnedCardDB.card_id).where(
            OwnedCardDB.user_id == user_id,
            OwnedCardDB.card_id.in_(counts.keys()),
        )
    )
    existing = set(result.scalars().all())

    for card_id, quantity in counts.items():
        if card_id in existing:
            await session.execute(
                update(OwnedCardDB)
                .where(OwnedCardDB.user_id == user_id, OwnedCardDB.card_id == card_id)
                .values(quantity=OwnedCardDB.quantity + quantity)
                .execution_options(synchronize_session=False)
            )
        else:
            session.add(
                OwnedCardDB(user_id=user_id, card_id=card_id, quantity=quantity, acquired_at=now)
            )

    await session.flush()


async def remove_owned_quantity(
    session: AsyncSession,
    user_id: str,
    card_id: int,
    quantity: int,
) -> int | None:
    """
    Remove `quantity` copies of a card from a user's inventory.

    Deletes the record when nothing would remain; quantity never reaches 0
    on a stored row.

    Returns:
        Remaining quantity (0 if the record was deleted), or None if the user
        does not own at least `quantity` copies. Nothing changes on None.
    """
    decremented = await session.execute(
        update(OwnedCardDB)
        .where(
            OwnedCardDB.user_id == user_id,
            OwnedCardDB.card_id == card_id,
            OwnedCardDB.quantity > quantity,
        )
        .values(quantity=OwnedCardDB.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if _rowcount(decremented) == 1:
        owned = await get_owned_card(session, user_id, card_id)
        return owned.quantity if owned else 0

    removed = await session.execute(
        delete(OwnedCardDB)
        .where(
            OwnedCardDB.user_id == user_id,
            OwnedCardDB.card_id == card_id,
            OwnedCardDB.quantity == quantity,
        )
        .execution_options(synchronize_session=False)
    )
    if _rowcount(removed) == 1:
        return 0

    return None


# --- History Operations ---


async def record_pack_opening(session: AsyncSession, opening: PackOpening) -> PackOpeningDB:
    """Append a pack opening to the history."""
    db_opening = PackOpeningDB(
        user_id=opening.user_id,
        pack_type=opening.pack_type,
        credits_spent=opening.credits_spent,
        card_ids=list(opening.card_ids),
        opened_at=opening.opened_at,
    )
    session.add(db_opening)
    await session.flush()
    return db_opening


def pack_opening_to_model(db_opening: PackOpeningDB) -> PackOpening:
    """Convert a database pack opening to a domain model."""
    return PackOpening(
        user_id=db_opening.user_id,
        pack_type=db_opening.pack_type,
        credits_spent=db_opening.credits_spent,
        card_ids=[int(card_id) for card_id in db_opening.card_ids],
        opened_at=as_utc(db_opening.opened_at),
    )


async def record_card_sale(session: AsyncSession, sale: CardSale) -> CardSaleDB:
    """Append a card sale to the history."""
    db_sale = CardSaleDB(
        user_id=sale.user_id,
        card_id=sale.card_id,
        quantity_sold=sale.quantity,
        credits_earned=sale.credits_earned,
        sold_at=sale.sold_at,
    )
    session.add(db_sale)
    await session.flush()
    return db_sale


async def record_daily_claim(
    session: AsyncSession,
    user_id: str,
    claim_date: date,
    credits_claimed: int,
    now: datetime,
) -> DailyClaimDB:
    """
    Record a granted daily claim.

    Raises IntegrityError if the user already has a claim for `claim_date`.
    """
    claim = DailyClaimDB(
        user_id=user_id,
        claim_date=claim_date,
        credits_claimed=credits_claimed,
        claimed_at=now,
    )
    session.add(claim)
    await session.flush()
    return claim


async def get_pack_openings(
    session: AsyncSession, user_id: str, limit: int = 50
) -> list[PackOpeningDB]:
    """Most recent pack openings for a user, newest first."""
    result = await session.execute(
        select(PackOpeningDB)
        .where(PackOpeningDB.user_id == user_id)
        .order_by(PackOpeningDB.opened_at.desc(), PackOpeningDB.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_sale_totals(session: AsyncSession, user_id: str) -> tuple[int, int]:
    """Total (copies sold, credits earned) for a user."""
    result = await session.execute(
        select(
            func.coalesce(func.sum(CardSaleDB.quantity_sold), 0),
            func.coalesce(func.sum(CardSaleDB.credits_earned), 0),
        ).where(CardSaleDB.user_id == user_id)
    )
    total_sold, total_earned = result.one()
    return int(total_sold), int(total_earned)


async def get_recent_sales(session: AsyncSession, user_id: str, limit: int) -> list[SaleRecord]:
    """Most recent sales for a user, newest first."""
    result = await session.execute(
        select(CardSaleDB)
        .where(CardSaleDB.user_id == user_id)
        .options(selectinload(CardSaleDB.card))
        .order_by(CardSaleDB.sold_at.desc(), CardSaleDB.id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return [
        SaleRecord(
            card_id=sale.card_id,
            card_name=sale.card.name,
            rarity=sale.card.rarity,
            quantity=sale.quantity_sold,
            credits_earned=sale.credits_earned,
            sold_at=as_utc(sale.sold_at),
        )
        for sale in result.scalars().all()
    ]


# --- Task Operations ---


def user_task_to_model(db_task: UserTaskDB, task: TaskDefinition) -> UserTask:
    """Convert a database task progress row to a domain model."""
    return UserTask(
        task=task,
        progress=db_task.progress,
        completed=db_task.completed,
        claimed=db_task.claimed,
        completed_at=as_utc(db_task.completed_at) if db_task.completed_at else None,
        claimed_at=as_utc(db_task.claimed_at) if db_task.claimed_at else None,
    )


async def get_user_tasks(session: AsyncSession, user_id: str) -> list[UserTaskDB]:
    """All task progress rows for a user."""
    result = await session.execute(
        select(UserTaskDB)
        .where(UserTaskDB.user_id == user_id)
        .order_by(UserTaskDB.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_user_task(session: AsyncSession, user_id: str, task_id: str) -> UserTaskDB | None:
    result = await session.execute(
        select(UserTaskDB)
        .where(UserTaskDB.user_id == user_id, UserTaskDB.task_id == task_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def ensure_user_tasks(
    session: AsyncSession, user_id: str, tasks: list[TaskDefinition]
) -> None:
    """
    Create zero-progress rows for any of `tasks` the user has no row for.

    Concurrent creation of the same row surfaces as IntegrityError on flush.
    """
    result = await session.execute(
        select(UserTaskDB.task_id).where(
            UserTaskDB.user_id == user_id,
            UserTaskDB.task_id.in_([task.id for task in tasks]),
        )
    )
    existing = set(result.scalars().all())

    missing = [task for task in tasks if task.id not in existing]
    for task in missing:
        session.add(UserTaskDB(user_id=user_id, task_id=task.id, progress=0))
    if missing:
        await session.flush()


async def _complete_if_reached(
    session: AsyncSession, user_id: str, task: TaskDefinition, now: datetime
) -> bool:
    result = await session.execute(
        update(UserTaskDB)
        .where(
            UserTaskDB.user_id == user_id,
            UserTaskDB.task_id == task.id,
            UserTaskDB.completed.is_(False),
            UserTaskDB.progress >= task.target,
        )
        .values(completed=True, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1


async def advance_task_progress(
    session: AsyncSession,
    user_id: str,
    task: TaskDefinition,
    increment: int,
    now: datetime,
) -> bool:
    """
    Add `increment` to an open task's progress, capped at its target.

    Completed tasks are left alone.

    Returns:
        True if this call completed the task
    """
    advanced = UserTaskDB.progress + increment
    await session.execute(
        update(UserTaskDB)
        .where(
            UserTaskDB.user_id == user_id,
            UserTaskDB.task_id == task.id,
            UserTaskDB.completed.is_(False),
        )
        .values(progress=case((advanced >= task.target, task.target), else_=advanced))
        .execution_options(synchronize_session=False)
    )
    return await _complete_if_reached(session, user_id, task, now)


async def raise_task_progress(
    session: AsyncSession,
    user_id: str,
    task: TaskDefinition,
    value: int,
    now: datetime,
) -> bool:
    """
    Raise an open task's progress to `value` (capped at its target).

    Progress never moves backwards.

    Returns:
        True if this call completed the task
    """
    capped = min(value, task.target)
    await session.execute(
        update(UserTaskDB)
        .where(
            UserTaskDB.user_id == user_id,
            UserTaskDB.task_id == task.id,
            UserTaskDB.completed.is_(False),
            UserTaskDB.progress < capped,
        )
        .values(progress=capped)
        .execution_options(synchronize_session=False)
    )
    return await _complete_if_reached(session, user_id, task, now)


async def mark_task_claimed(
    session: AsyncSession, user_id: str, task_id: str, now: datetime
) -> bool:
    """
    Flag a completed task's reward as claimed.

    Returns False (and changes nothing) unless the task is completed and
    not yet claimed, so of two concurrent claims only one can match.
    """
    result = await session.execute(
        update(UserTaskDB)
        .where(
            UserTaskDB.user_id == user_id,
            UserTaskDB.task_id == task_id,
            UserTaskDB.completed.is_(True),
            UserTaskDB.claimed.is_(False),
        )
        .values(claimed=True, claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    return _rowcount(result) == 1
