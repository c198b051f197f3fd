import random
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from packvault.db.operations import upsert_card
from packvault.models.card import Card, Rarity
from packvault.models.db import AccountDB, Base

START = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def make_card(
    card_id: int,
    rarity: Rarity = Rarity.COMMON,
    overall_rating: int = 70,
    name: str | None = None,
) -> Card:
    """Build a catalog card with flat attributes."""
    return Card(
        id=card_id,
        name=name or f"Player {card_id}",
        defense=overall_rating,
        offense=overall_rating,
        mechanics=overall_rating,
        challenges=overall_rating,
        game_iq=overall_rating,
        team_sync=overall_rating,
        overall_rating=overall_rating,
        rarity=rarity,
        team="Team Liquid",
        region="NA",
    )


@pytest.fixture
def catalog_cards() -> list[Card]:
    """Small catalog with every rarity represented."""
    return [
        make_card(1, Rarity.SUPER, 96, "Zen"),
        make_card(2, Rarity.SUPER, 92, "Vatira"),
        make_card(3, Rarity.EPIC, 88, "Firstkiller"),
        make_card(4, Rarity.EPIC, 74, "Daniel"),
        make_card(5, Rarity.RARE, 85, "Atow"),
        make_card(6, Rarity.RARE, 79, "Rise"),
        make_card(7, Rarity.COMMON, 80, "Chicago"),
        make_card(8, Rarity.COMMON, 60, "Beastmode"),
    ]


class FrozenClock:
    """Mutable stand-in for the request clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


async def seed_catalog(session: AsyncSession, cards: list[Card]) -> None:
    for card in cards:
        await upsert_card(session, card)
    await session.commit()


async def set_balance(session: AsyncSession, user_id: str, balance: int) -> None:
    await session.execute(
        update(AccountDB).where(AccountDB.user_id == user_id).values(balance=balance)
    )
    await session.commit()


@pytest.fixture
async def client(session_factory, clock: FrozenClock):
    """Provide an async test client with overridden database and clock."""
    from packvault.api.dependencies import get_clock, get_rng
    from packvault.db.database import get_session, get_session_factory
    from packvault.main import app

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock.now
    app.dependency_overrides[get_rng] = lambda: random.Random(1234)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def seed():
    """Async helper that upserts cards and commits."""
    return seed_catalog


@pytest.fixture
def force_balance():
    """Async helper that overwrites an account balance."""
    return set_balance


@pytest.fixture
async def seeded_session(session: AsyncSession, catalog_cards: list[Card]) -> AsyncSession:
    await seed_catalog(session, catalog_cards)
    return session
