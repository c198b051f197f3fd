"""Tests for ledger operations: packs, sales, claims, and history."""

import logging
import random
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.db.operations import add_owned_cards, get_owned_card
from packvault.models.card import Rarity
from packvault.models.db import CardSaleDB, DailyClaimDB, PackOpeningDB
from packvault.models.failure import (
    AccountExistsError,
    AccountNotFoundError,
    CardNotFoundError,
    CardNotOwnedError,
    CatalogConfigurationError,
    ConcurrencyConflictError,
    InsufficientCreditsError,
    InsufficientQuantityError,
    InvalidQuantityError,
)
from packvault.services.ledger import (
    claim_daily_credits,
    claim_hourly_credits,
    create_account,
    get_balance,
    get_collection_stats,
    get_daily_claim_status,
    get_inventory,
    get_pack_history,
    get_sale_history,
    open_pack,
    run_in_transaction,
    sell_cards,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


async def _count(session: AsyncSession, model) -> int:
    return int(await session.scalar(select(func.count()).select_from(model)))


@pytest.fixture
async def account_session(seeded_session: AsyncSession) -> AsyncSession:
    """Seeded catalog plus a fresh account for user-1."""
    await create_account(seeded_session, "user-1", NOW)
    await seeded_session.commit()
    return seeded_session


class TestCreateAccount:
    async def test_starter_balance(self, session: AsyncSession) -> None:
        account = await create_account(session, "user-1", NOW)

        assert account.balance == 3500
        assert account.packs_opened == 0
        assert account.last_daily_claim is None

    async def test_duplicate_rejected(self, session: AsyncSession) -> None:
        await create_account(session, "user-1", NOW)

        with pytest.raises(AccountExistsError):
            await create_account(session, "user-1", NOW)

    async def test_balance_of_missing_account(self, session: AsyncSession) -> None:
        with pytest.raises(AccountNotFoundError):
            await get_balance(session, "nobody")


class TestOpenPack:
    async def test_debits_and_adds_cards(self, account_session: AsyncSession) -> None:
        result = await open_pack(account_session, "user-1", "standard", NOW, random.Random(1))

        assert len(result.cards) == 5
        assert result.credits_spent == 500
        assert result.remaining_credits == 3000

        inventory = await get_inventory(account_session, "user-1")
        assert sum(o.quantity for o in inventory) == 5

        stats = await get_collection_stats(account_session, "user-1")
        assert stats.packs_opened == 1
        assert stats.total_cards == 5

    async def test_records_opening(self, account_session: AsyncSession) -> None:
        result = await open_pack(account_session, "user-1", "premium", NOW, random.Random(2))

        history = await get_pack_history(account_session, "user-1")

        assert len(history) == 1
        assert history[0].pack_type == "premium"
        assert history[0].credits_spent == 1000
        assert history[0].card_ids == [c.id for c in result.cards]

    async def test_unknown_pack_opens_standard(self, account_session: AsyncSession) -> None:
        result = await open_pack(account_session, "user-1", "mythic", NOW, random.Random(3))

        assert result.pack_type.id == "standard"
        assert result.credits_spent == 500

    async def test_unknown_pack_fallback_logged_at_debug(
        self, account_session: AsyncSession, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="packvault.services.ledger"):
            await open_pack(account_session, "user-1", "mythic", NOW, random.Random(3))

        fallback = [r for r in caplog.records if "Unknown pack type" in r.getMessage()]
        assert [r.levelno for r in fallback] == [logging.DEBUG]

    async def test_insufficient_credits(self, account_session: AsyncSession, force_balance) -> None:
        await force_balance(account_session, "user-1", 400)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await open_pack(account_session, "user-1", "standard", NOW, random.Random(1))

        assert exc_info.value.available == 400
        assert exc_info.value.required == 500
        assert (await get_balance(account_session, "user-1")).balance == 400
        assert await get_inventory(account_session, "user-1") == []

    async def test_missing_account(self, seeded_session: AsyncSession) -> None:
        with pytest.raises(AccountNotFoundError):
            await open_pack(seeded_session, "nobody", "standard", NOW, random.Random(1))

    async def test_empty_catalog_rolls_back_debit(
        self, session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A pack that cannot be filled leaves the balance untouched."""
        await create_account(session, "user-1", NOW)
        await session.commit()

        with pytest.raises(CatalogConfigurationError):
            await run_in_transaction(
                session_factory,
                lambda s: open_pack(s, "user-1", "standard", NOW, random.Random(1)),
            )

        async with session_factory() as fresh:
            assert (await get_balance(fresh, "user-1")).balance == 3500
            assert await _count(fresh, PackOpeningDB) == 0

    async def test_balance_never_negative(self, account_session: AsyncSession) -> None:
        """Seven standard packs drain 3500 credits; the eighth is refused."""
        for _ in range(7):
            await open_pack(account_session, "user-1", "standard", NOW, random.Random(4))

        with pytest.raises(InsufficientCreditsError):
            await open_pack(account_session, "user-1", "standard", NOW, random.Random(4))

        assert (await get_balance(account_session, "user-1")).balance == 0


class TestSellCards:
    async def test_sell_some_copies(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [3, 3, 3], NOW)

        result = await sell_cards(account_session, "user-1", 3, 2, NOW)

        # Epic 88 -> floor(75 * 1.5) = 112 per copy
        assert result.credits_earned == 224
        assert result.new_balance == 3500 + 224
        assert result.remaining_quantity == 1

    async def test_sell_last_copy_deletes_record(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [8], NOW)

        result = await sell_cards(account_session, "user-1", 8, 1, NOW)

        assert result.remaining_quantity == 0
        assert result.credits_earned == 12
        assert await get_owned_card(account_session, "user-1", 8) is None

    async def test_sale_is_recorded(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [1, 1], NOW)

        await sell_cards(account_session, "user-1", 1, 1, NOW)
        await sell_cards(account_session, "user-1", 1, 1, NOW + timedelta(minutes=5))

        history = await get_sale_history(account_session, "user-1")
        assert history.total_sold == 2
        # Super 96 -> 250 * 2.0
        assert history.total_credits_earned == 1000
        assert history.recent_sales[0].card_name == "Zen"
        assert history.recent_sales[0].sold_at == NOW + timedelta(minutes=5)

    async def test_sell_more_than_owned(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [5], NOW)

        with pytest.raises(InsufficientQuantityError) as exc_info:
            await sell_cards(account_session, "user-1", 5, 2, NOW)

        assert exc_info.value.available == 1
        assert not isinstance(exc_info.value, CardNotOwnedError)
        assert (await get_owned_card(account_session, "user-1", 5)).quantity == 1
        assert (await get_balance(account_session, "user-1")).balance == 3500

    async def test_sell_unowned(self, account_session: AsyncSession) -> None:
        with pytest.raises(CardNotOwnedError):
            await sell_cards(account_session, "user-1", 5, 1, NOW)

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_invalid_quantity(self, account_session: AsyncSession, quantity: int) -> None:
        with pytest.raises(InvalidQuantityError):
            await sell_cards(account_session, "user-1", 5, quantity, NOW)

    async def test_unknown_card(self, account_session: AsyncSession) -> None:
        with pytest.raises(CardNotFoundError):
            await sell_cards(account_session, "user-1", 999, 1, NOW)

    async def test_missing_account(self, seeded_session: AsyncSession) -> None:
        with pytest.raises(AccountNotFoundError):
            await sell_cards(seeded_session, "nobody", 5, 1, NOW)

    async def test_sale_does_not_touch_accrual_clock(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [5], NOW)

        await sell_cards(account_session, "user-1", 5, 1, NOW + timedelta(hours=3))

        assert (await get_balance(account_session, "user-1")).last_credit_earn == NOW


class TestDailyClaim:
    async def test_first_claim_granted(self, account_session: AsyncSession) -> None:
        result = await claim_daily_credits(account_session, "user-1", NOW)

        assert result.granted
        assert result.amount == 250
        assert result.new_balance == 3750
        assert result.next_eligible_at == datetime(2024, 1, 2, tzinfo=UTC)
        assert await _count(account_session, DailyClaimDB) == 1

    async def test_second_claim_same_day_refused(self, account_session: AsyncSession) -> None:
        await claim_daily_credits(account_session, "user-1", NOW)

        result = await claim_daily_credits(account_session, "user-1", NOW + timedelta(hours=11))

        assert not result.granted
        assert result.amount == 0
        assert result.new_balance == 3750
        assert result.wait_seconds == 3600
        assert await _count(account_session, DailyClaimDB) == 1

    async def test_claim_after_midnight(self, account_session: AsyncSession) -> None:
        await claim_daily_credits(
            account_session, "user-1", datetime(2024, 1, 1, 23, 59, tzinfo=UTC)
        )

        result = await claim_daily_credits(
            account_session, "user-1", datetime(2024, 1, 2, 0, 1, tzinfo=UTC)
        )

        assert result.granted
        assert result.new_balance == 4000

    async def test_status(self, account_session: AsyncSession) -> None:
        before = await get_daily_claim_status(account_session, "user-1", NOW)
        await claim_daily_credits(account_session, "user-1", NOW)
        after = await get_daily_claim_status(account_session, "user-1", NOW)

        assert before.can_claim
        assert before.state == "no_claim_yet"
        assert not after.can_claim
        assert after.state == "claimed_today"
        assert after.wait_seconds == 12 * 3600

    async def test_missing_account(self, session: AsyncSession) -> None:
        with pytest.raises(AccountNotFoundError):
            await claim_daily_credits(session, "nobody", NOW)


class TestHourlyClaim:
    async def test_too_soon(self, account_session: AsyncSession) -> None:
        result = await claim_hourly_credits(account_session, "user-1", NOW + timedelta(minutes=30))

        assert not result.granted
        assert result.wait_seconds == 1800
        assert result.new_balance == 3500

    async def test_single_tick_without_backfill(self, account_session: AsyncSession) -> None:
        later = NOW + timedelta(hours=5)

        first = await claim_hourly_credits(account_session, "user-1", later)
        second = await claim_hourly_credits(account_session, "user-1", later)

        assert first.granted
        assert first.new_balance == 3510
        assert not second.granted
        assert second.new_balance == 3510


class TestInventoryAndHistory:
    async def test_inventory_sorted_rarest_first(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [8, 7, 4, 3, 2], NOW)

        inventory = await get_inventory(account_session, "user-1")

        assert [o.card.id for o in inventory] == [2, 3, 4, 7, 8]

    async def test_collection_stats(self, account_session: AsyncSession) -> None:
        await add_owned_cards(account_session, "user-1", [1, 1, 5, 7], NOW)

        stats = await get_collection_stats(account_session, "user-1")

        assert stats.total_cards == 4
        assert stats.unique_cards == 3
        assert stats.by_rarity == {"Super": 2, "Epic": 0, "Rare": 1, "Common": 1}
        assert stats.super_collected == 1
        assert stats.super_total == 2
        assert stats.super_percentage == 50

    async def test_empty_sale_history(self, account_session: AsyncSession) -> None:
        history = await get_sale_history(account_session, "user-1")

        assert history.total_sold == 0
        assert history.total_credits_earned == 0
        assert history.recent_sales == []

    async def test_pack_history_newest_first(self, account_session: AsyncSession) -> None:
        await open_pack(account_session, "user-1", "standard", NOW, random.Random(1))
        await open_pack(
            account_session, "user-1", "premium", NOW + timedelta(minutes=1), random.Random(1)
        )

        history = await get_pack_history(account_session, "user-1")

        assert [h.pack_type for h in history] == ["premium", "standard"]


class TestRunInTransaction:
    async def test_commits_on_success(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        await run_in_transaction(session_factory, lambda s: create_account(s, "user-1", NOW))

        async with session_factory() as fresh:
            assert (await get_balance(fresh, "user-1")).balance == 3500

    async def test_retries_transient_failure(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        attempts = []

        async def flaky(session: AsyncSession) -> str:
            attempts.append(1)
            if len(attempts) < 2:
                raise OperationalError("UPDATE accounts", {}, Exception("database is locked"))
            return "ok"

        result = await run_in_transaction(session_factory, flaky, backoff_seconds=0)

        assert result == "ok"
        assert len(attempts) == 2

    async def test_gives_up_after_max_attempts(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        attempts = []

        async def always_conflicts(session: AsyncSession) -> None:
            attempts.append(1)
            raise ConcurrencyConflictError("always_conflicts", 1)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await run_in_transaction(
                session_factory, always_conflicts, max_attempts=3, backoff_seconds=0
            )

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3

    async def test_retries_unique_violation(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        attempts = []

        async def racing_insert(session: AsyncSession) -> str:
            attempts.append(1)
            if len(attempts) < 2:
                raise IntegrityError(
                    "INSERT INTO daily_claims",
                    {},
                    Exception("UNIQUE constraint failed: daily_claims.user_id"),
                )
            return "ok"

        assert await run_in_transaction(session_factory, racing_insert, backoff_seconds=0) == "ok"
        assert len(attempts) == 2

    async def test_check_violation_not_retried(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A deterministic constraint failure surfaces as-is, not as a conflict."""
        attempts = []

        async def overdraw(session: AsyncSession) -> None:
            attempts.append(1)
            raise IntegrityError(
                "UPDATE accounts",
                {},
                Exception("CHECK constraint failed: ck_account_balance_non_negative"),
            )

        with pytest.raises(IntegrityError):
            await run_in_transaction(session_factory, overdraw, backoff_seconds=0)

        assert len(attempts) == 1

    async def test_known_errors_not_retried(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        attempts = []

        async def rejected(session: AsyncSession) -> None:
            attempts.append(1)
            raise InsufficientCreditsError(required=500, available=0)

        with pytest.raises(InsufficientCreditsError):
            await run_in_transaction(session_factory, rejected, backoff_seconds=0)

        assert len(attempts) == 1

    async def test_rolls_back_on_failure(
        self, session: AsyncSession, session_factory: async_sessionmaker[AsyncSession], seed,
        card_factory,
    ) -> None:
        """A failed sale leaves the earlier statements of the transaction undone."""
        await seed(session, [card_factory(1, Rarity.COMMON)])
        await create_account(session, "user-1", NOW)
        await add_owned_cards(session, "user-1", [1], NOW)
        await session.commit()

        async def sell_then_fail(s: AsyncSession) -> None:
            await sell_cards(s, "user-1", 1, 1, NOW)
            raise InsufficientCreditsError(required=1, available=0)

        with pytest.raises(InsufficientCreditsError):
            await run_in_transaction(session_factory, sell_then_fail)

        async with session_factory() as fresh:
            assert (await get_owned_card(fresh, "user-1", 1)).quantity == 1
            assert (await get_balance(fresh, "user-1")).balance == 3500
            assert await _count(fresh, CardSaleDB) == 0
