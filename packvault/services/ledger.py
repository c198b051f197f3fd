"""
Credit ledger and inventory mutations.

Each operation takes an AsyncSession that is already inside a transaction
and an explicit user_id. All preconditions are checked against the row at
the moment it is written (conditional UPDATE), so a rejected operation
raises before anything is committed and the caller's transaction rolls back
every statement issued so far.

run_in_transaction() wraps an operation in its own session and
transaction, retrying the whole unit on lock contention or a lost race.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.config import PACK_HISTORY_LIMIT, SALE_HISTORY_LIMIT, settings
from packvault.db.operations import (
    account_to_model,
    add_owned_cards,
    advance_task_progress,
    apply_daily_claim,
    apply_hourly_accrual,
    card_to_model,
    count_cards_by_rarity,
    count_distinct_owned,
    create_account as create_account_row,
    credit_balance,
    debit_for_pack,
    ensure_user_tasks,
    get_account,
    get_card,
    get_owned_card,
    get_owned_cards,
    get_pack_openings,
    get_recent_sales,
    get_sale_totals,
    get_user_task,
    get_user_tasks,
    load_catalog,
    mark_task_claimed,
    owned_card_to_model,
    pack_opening_to_model,
    raise_task_progress,
    record_card_sale,
    record_daily_claim,
    record_pack_opening,
    remove_owned_quantity,
    user_task_to_model,
)
from packvault.models.account import Account, CardSale, OwnedCard, PackOpening
from packvault.models.card import RARITY_ORDER, Rarity
from packvault.models.failure import (
    AccountExistsError,
    AccountNotFoundError,
    CardNotFoundError,
    CardNotOwnedError,
    ConcurrencyConflictError,
    InsufficientCreditsError,
    InsufficientQuantityError,
    InvalidQuantityError,
    TaskAlreadyClaimedError,
    TaskNotCompletedError,
    TaskNotFoundError,
)
from packvault.models.pack import get_pack_type, resolve_pack_type
from packvault.models.results import (
    BalanceView,
    ClaimResult,
    ClaimStatus,
    CollectionStats,
    PackResult,
    SaleHistory,
    SaleResult,
    TaskBoard,
    TaskClaimResult,
)
from packvault.models.task import (
    TASK_CARD_RARITIES,
    TASKS,
    TaskType,
    UserTask,
    get_task,
    task_sort_key,
    tasks_of_type,
)
from packvault.services.claims import (
    ClaimState,
    as_utc,
    claim_day,
    claim_window_start,
    daily_claim_state,
    evaluate_daily_claim,
    evaluate_hourly_accrual,
    next_daily_reset,
)
from packvault.services.pack_sampler import draw_pack
from packvault.services.valuation import sell_value

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lock contention, deadlocks, and unique-key races all leave nothing committed.
# Other IntegrityErrors (check or foreign-key violations) are not races and
# propagate unchanged.
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    ConcurrencyConflictError,
    OperationalError,
    IntegrityError,
)

# SQLSTATE unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """Whether an IntegrityError came from a unique or primary-key constraint."""
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if sqlstate is not None:
        return str(sqlstate) == UNIQUE_VIOLATION_SQLSTATE
    # sqlite3 carries no SQLSTATE
    return "UNIQUE constraint failed" in str(error.orig)


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    name: str | None = None,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """
    Run an operation as one atomic unit, retrying on conflicts.

    Each attempt gets a fresh session and transaction. The transaction
    commits only if the operation returns; any exception rolls it back.
    Lock contention and unique-key races are retried with exponential
    backoff (backoff, 2×backoff, ...). Other errors, including check and
    foreign-key violations, propagate immediately.

    Raises:
        ConcurrencyConflictError: If every attempt hit a retryable failure
    """
    attempts = max_attempts if max_attempts is not None else settings.transaction_max_attempts
    backoff = (
        backoff_seconds if backoff_seconds is not None else settings.transaction_backoff_seconds
    )
    op_name = name or getattr(operation, "__name__", "operation")

    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await operation(session)
        except RETRYABLE_ERRORS as e:
            if isinstance(e, IntegrityError) and not is_unique_violation(e):
                raise
            last_error = e
            logger.warning(
                "%s hit a conflict (attempt %d/%d): %s",
                op_name,
                attempt + 1,
                attempts,
                type(e).__name__,
            )
            if attempt + 1 < attempts:
                await asyncio.sleep(backoff * 2**attempt)

    logger.error("%s gave up after %d attempts", op_name, attempts)
    raise ConcurrencyConflictError(op_name, attempts) from last_error


async def _require_account(session: AsyncSession, user_id: str) -> Account:
    db_account = await get_account(session, user_id)
    if db_account is None:
        raise AccountNotFoundError(user_id)
    return account_to_model(db_account)


async def _advance_tasks(
    session: AsyncSession, user_id: str, task_type: TaskType, increment: int, now: datetime
) -> None:
    """Add `increment` to every open task of one type."""
    if increment <= 0:
        return
    tasks = tasks_of_type(task_type)
    await ensure_user_tasks(session, user_id, tasks)
    for task in tasks:
        if await advance_task_progress(session, user_id, task, increment, now):
            logger.info("%s completed task %s", user_id, task.id)


async def _raise_tasks(
    session: AsyncSession, user_id: str, task_type: TaskType, value: int, now: datetime
) -> None:
    """Raise every open task of one type to an absolute progress value."""
    tasks = tasks_of_type(task_type)
    await ensure_user_tasks(session, user_id, tasks)
    for task in tasks:
        if await raise_task_progress(session, user_id, task, value, now):
            logger.info("%s completed task %s", user_id, task.id)


# --- Accounts ---


async def create_account(session: AsyncSession, user_id: str, now: datetime) -> Account:
    """
    Register an account with the starter balance.

    Raises:
        AccountExistsError: If the user already has an account
    """
    if await get_account(session, user_id) is not None:
        raise AccountExistsError(user_id)

    try:
        db_account = await create_account_row(
            session, user_id, settings.starter_credits, as_utc(now)
        )
    except IntegrityError as e:
        # Lost a race with a concurrent registration
        raise AccountExistsError(user_id) from e

    logger.info("Created account %s with %d credits", user_id, settings.starter_credits)
    return account_to_model(db_account)


async def get_balance(session: AsyncSession, user_id: str) -> BalanceView:
    """
    Current balance and last passive-earn timestamp.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    account = await _require_account(session, user_id)
    return BalanceView(balance=account.balance, last_credit_earn=account.last_credit_earn)


# --- Packs ---


async def open_pack(
    session: AsyncSession,
    user_id: str,
    pack_id: str | None,
    now: datetime,
    rng: random.Random,
) -> PackResult:
    """
    Buy and open a pack.

    Debits the pack price, draws the cards, adds them to the inventory,
    bumps the packs-opened counter, records the opening, and advances the
    pack, card, and collection tasks. Unknown pack ids fall back to the
    default pack.

    Raises:
        AccountNotFoundError: If the user has no account
        InsufficientCreditsError: If the balance is below the pack price
        CatalogConfigurationError: If the catalog is empty
    """
    now = as_utc(now)
    pack_type = resolve_pack_type(pack_id)
    if pack_id and get_pack_type(pack_id) is None:
        logger.debug("Unknown pack type %r for %s, using %s", pack_id, user_id, pack_type.id)

    if not await debit_for_pack(session, user_id, pack_type.price):
        account = await _require_account(session, user_id)
        raise InsufficientCreditsError(required=pack_type.price, available=account.balance)

    catalog = await load_catalog(session)
    cards = draw_pack(catalog, pack_type, pack_type.card_count, rng)
    card_ids = [card.id for card in cards]

    await add_owned_cards(session, user_id, card_ids, now)
    await record_pack_opening(
        session,
        PackOpening(
            user_id=user_id,
            pack_type=pack_type.id,
            credits_spent=pack_type.price,
            card_ids=card_ids,
            opened_at=now,
        ),
    )
    await _advance_tasks(session, user_id, TaskType.PACKS, 1, now)
    await _advance_tasks(
        session,
        user_id,
        TaskType.CARDS,
        sum(1 for card in cards if card.rarity in TASK_CARD_RARITIES),
        now,
    )
    await _raise_tasks(
        session, user_id, TaskType.COLLECTION, await count_distinct_owned(session, user_id), now
    )

    account = await _require_account(session, user_id)
    logger.info(
        "%s opened a %s pack for %d credits: %s",
        user_id,
        pack_type.id,
        pack_type.price,
        card_ids,
    )
    return PackResult(
        pack_type=pack_type,
        cards=cards,
        credits_spent=pack_type.price,
        remaining_credits=account.balance,
    )


# --- Selling ---


async def sell_cards(
    session: AsyncSession,
    user_id: str,
    card_id: int,
    quantity: int,
    now: datetime,
) -> SaleResult:
    """
    Sell copies of an owned card back for credits.

    All-or-nothing: either every requested copy is sold or nothing changes.
    The ownership record is deleted when its last copy is sold. Each copy
    sold advances the selling tasks.

    Raises:
        InvalidQuantityError: If quantity < 1
        CardNotFoundError: If the card is not in the catalog
        AccountNotFoundError: If the user has no account
        CardNotOwnedError: If the user owns no copies
        InsufficientQuantityError: If the user owns fewer than `quantity`
    """
    if quantity < 1:
        raise InvalidQuantityError(quantity)

    db_card = await get_card(session, card_id)
    if db_card is None:
        raise CardNotFoundError(card_id)
    card = card_to_model(db_card)

    remaining = await remove_owned_quantity(session, user_id, card_id, quantity)
    if remaining is None:
        await _require_account(session, user_id)
        owned = await get_owned_card(session, user_id, card_id)
        if owned is None:
            raise CardNotOwnedError(card_id, quantity)
        raise InsufficientQuantityError(card_id, quantity, owned.quantity)

    credits_earned = sell_value(card.rarity, card.overall_rating) * quantity
    if not await credit_balance(session, user_id, credits_earned):
        raise AccountNotFoundError(user_id)

    await record_card_sale(
        session,
        CardSale(
            user_id=user_id,
            card_id=card_id,
            quantity=quantity,
            credits_earned=credits_earned,
            sold_at=as_utc(now),
        ),
    )
    await _advance_tasks(session, user_id, TaskType.SELLING, quantity, as_utc(now))

    account = await _require_account(session, user_id)
    logger.info(
        "%s sold %d x %s (%s) for %d credits",
        user_id,
        quantity,
        card.name,
        card.rarity.value,
        credits_earned,
    )
    return SaleResult(
        credits_earned=credits_earned,
        new_balance=account.balance,
        remaining_quantity=remaining,
    )


# --- Claims ---


async def get_daily_claim_status(session: AsyncSession, user_id: str, now: datetime) -> ClaimStatus:
    """Whether the daily bonus can be claimed at `now`, and when the next window opens."""
    now = as_utc(now)
    reset_hour = settings.daily_reset_hour_utc
    account = await _require_account(session, user_id)

    state = daily_claim_state(account.last_daily_claim, now, reset_hour)
    can_claim = state is not ClaimState.CLAIMED_TODAY
    next_reset = next_daily_reset(now, reset_hour)
    return ClaimStatus(
        can_claim=can_claim,
        state=state.value,
        amount=settings.daily_bonus_credits,
        next_eligible_at=now if can_claim else next_reset,
        wait_seconds=0 if can_claim else max(0, int((next_reset - now).total_seconds())),
    )


async def claim_daily_credits(session: AsyncSession, user_id: str, now: datetime) -> ClaimResult:
    """
    Claim the once-per-day bonus.

    Never raises for ineligibility; an ineligible claim returns
    granted=False with the wait until the next reset.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    now = as_utc(now)
    reset_hour = settings.daily_reset_hour_utc
    amount = settings.daily_bonus_credits
    next_reset = next_daily_reset(now, reset_hour)

    granted = await apply_daily_claim(
        session, user_id, amount, now, claim_window_start(now, reset_hour)
    )
    account = await _require_account(session, user_id)

    if granted:
        await record_daily_claim(session, user_id, claim_day(now, reset_hour), amount, now)
        logger.info("%s claimed %d daily credits", user_id, amount)
        return ClaimResult(
            granted=True,
            amount=amount,
            new_balance=account.balance,
            next_eligible_at=next_reset,
            wait_seconds=max(0, int((next_reset - now).total_seconds())),
        )

    decision = evaluate_daily_claim(account, now, amount, reset_hour)
    logger.debug("%s already claimed today; next window at %s", user_id, decision.next_eligible_at)
    return ClaimResult(
        granted=False,
        amount=0,
        new_balance=account.balance,
        next_eligible_at=decision.next_eligible_at,
        wait_seconds=decision.wait_seconds,
    )


async def claim_hourly_credits(session: AsyncSession, user_id: str, now: datetime) -> ClaimResult:
    """
    Claim one passive accrual tick.

    Grants a single tick no matter how many intervals have elapsed.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    now = as_utc(now)
    amount = settings.hourly_accrual_credits
    interval = timedelta(seconds=settings.hourly_accrual_interval_seconds)

    granted = await apply_hourly_accrual(session, user_id, amount, now, now - interval)
    account = await _require_account(session, user_id)

    if granted:
        logger.info("%s accrued %d credits", user_id, amount)
        return ClaimResult(
            granted=True,
            amount=amount,
            new_balance=account.balance,
            next_eligible_at=now + interval,
            wait_seconds=int(interval.total_seconds()),
        )

    decision = evaluate_hourly_accrual(account, now, amount, interval)
    return ClaimResult(
        granted=False,
        amount=0,
        new_balance=account.balance,
        next_eligible_at=decision.next_eligible_at,
        wait_seconds=decision.wait_seconds,
    )


# --- Tasks ---


async def get_task_board(session: AsyncSession, user_id: str) -> TaskBoard:
    """
    Every reward task with the user's progress.

    Tasks the user has never advanced show zero progress. Ordered open
    tasks first, then unclaimed rewards, then by difficulty.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    await _require_account(session, user_id)
    rows = {row.task_id: row for row in await get_user_tasks(session, user_id)}

    tasks = [
        user_task_to_model(rows[task.id], task) if task.id in rows else UserTask(task=task)
        for task in TASKS.values()
    ]
    tasks.sort(key=task_sort_key)
    return TaskBoard(tasks=tasks, unclaimed_count=sum(1 for t in tasks if t.claimable))


async def claim_task_reward(
    session: AsyncSession, user_id: str, task_id: str, now: datetime
) -> TaskClaimResult:
    """
    Claim the credit reward of one completed task.

    The claimed flag and the credit are written in the same transaction;
    a reward can only ever be claimed once.

    Raises:
        TaskNotFoundError: If the task id is unknown
        AccountNotFoundError: If the user has no account
        TaskNotCompletedError: If the task is still open
        TaskAlreadyClaimedError: If the reward was already claimed
    """
    now = as_utc(now)
    task = get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    if not await mark_task_claimed(session, user_id, task.id, now):
        await _require_account(session, user_id)
        row = await get_user_task(session, user_id, task.id)
        if row is not None and row.claimed:
            raise TaskAlreadyClaimedError(task.id)
        raise TaskNotCompletedError(task.id, row.progress if row else 0, task.target)

    if not await credit_balance(session, user_id, task.reward_credits):
        raise AccountNotFoundError(user_id)

    account = await _require_account(session, user_id)
    logger.info("%s claimed %d credits for task %s", user_id, task.reward_credits, task.id)
    return TaskClaimResult(
        task_ids=[task.id],
        credits_earned=task.reward_credits,
        new_balance=account.balance,
    )


async def claim_all_task_rewards(
    session: AsyncSession, user_id: str, now: datetime
) -> TaskClaimResult:
    """
    Claim every completed, unclaimed task reward in one transaction.

    Claiming with nothing claimable is not an error; the result is empty.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    now = as_utc(now)
    await _require_account(session, user_id)

    claimed = []
    for row in await get_user_tasks(session, user_id):
        task = get_task(row.task_id)
        if task is None or not row.completed or row.claimed:
            continue
        if await mark_task_claimed(session, user_id, task.id, now):
            claimed.append(task)

    credits_earned = sum(task.reward_credits for task in claimed)
    if credits_earned and not await credit_balance(session, user_id, credits_earned):
        raise AccountNotFoundError(user_id)

    account = await _require_account(session, user_id)
    if claimed:
        logger.info(
            "%s claimed %d task rewards for %d credits", user_id, len(claimed), credits_earned
        )
    return TaskClaimResult(
        task_ids=[task.id for task in claimed],
        credits_earned=credits_earned,
        new_balance=account.balance,
    )


# --- Inventory & history ---


def _inventory_sort_key(owned: OwnedCard) -> tuple[int, int, str]:
    return (
        RARITY_ORDER.index(owned.card.rarity),
        -owned.card.overall_rating,
        owned.card.name,
    )


async def get_inventory(session: AsyncSession, user_id: str) -> list[OwnedCard]:
    """
    A user's owned cards, rarest first, then by rating (descending).

    Raises:
        AccountNotFoundError: If the user has no account
    """
    await _require_account(session, user_id)
    owned = [owned_card_to_model(o) for o in await get_owned_cards(session, user_id)]
    return sorted(owned, key=_inventory_sort_key)


async def get_collection_stats(session: AsyncSession, user_id: str) -> CollectionStats:
    """
    Totals, rarity breakdown, and Super-collection progress for a user.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    account = await _require_account(session, user_id)
    inventory = [owned_card_to_model(o) for o in await get_owned_cards(session, user_id)]
    catalog_counts = await count_cards_by_rarity(session)

    by_rarity = {rarity.value: 0 for rarity in RARITY_ORDER}
    for owned in inventory:
        by_rarity[owned.card.rarity.value] += owned.quantity

    return CollectionStats(
        total_cards=sum(o.quantity for o in inventory),
        unique_cards=len(inventory),
        packs_opened=account.packs_opened,
        by_rarity=by_rarity,
        super_collected=sum(1 for o in inventory if o.card.rarity is Rarity.SUPER),
        super_total=catalog_counts.get(Rarity.SUPER.value, 0),
    )


async def get_sale_history(
    session: AsyncSession,
    user_id: str,
    limit: int = SALE_HISTORY_LIMIT,
) -> SaleHistory:
    """
    Lifetime sale totals and the most recent sales.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    await _require_account(session, user_id)
    total_sold, total_earned = await get_sale_totals(session, user_id)
    recent = await get_recent_sales(session, user_id, limit)
    return SaleHistory(
        total_sold=total_sold, total_credits_earned=total_earned, recent_sales=recent
    )


async def get_pack_history(
    session: AsyncSession,
    user_id: str,
    limit: int = PACK_HISTORY_LIMIT,
) -> list[PackOpening]:
    """
    Most recent pack openings, newest first.

    Raises:
        AccountNotFoundError: If the user has no account
    """
    await _require_account(session, user_id)
    return [pack_opening_to_model(o) for o in await get_pack_openings(session, user_id, limit)]
