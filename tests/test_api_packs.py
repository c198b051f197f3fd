"""Tests for pack API endpoints."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession


class TestListPacks:
    async def test_list_packs(self, client: AsyncClient) -> None:
        response = await client.get("/packs")

        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data] == ["standard", "premium", "ultimate"]
        assert data[0]["price"] == 500
        assert data[0]["card_count"] == 5
        assert data[0]["rates"] == {"Super": 1.5, "Epic": 8, "Rare": 28, "Common": 62.5}
        assert data[2]["rate_description"].startswith("Super: 15%")


class TestOpenPack:
    async def test_open_pack(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/packs/open", json={"pack_type": "premium"})

        assert response.status_code == 200
        data = response.json()
        assert data["pack_type"] == "premium"
        assert len(data["cards"]) == 5
        assert data["credits_spent"] == 1000
        assert data["remaining_credits"] == 2500

    async def test_default_pack(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/packs/open", json={})

        assert response.json()["pack_type"] == "standard"

    async def test_unknown_pack_falls_back(
        self, client: AsyncClient, seeded_session: AsyncSession
    ) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/packs/open", json={"pack_type": "mythic"})

        assert response.status_code == 200
        assert response.json()["pack_type"] == "standard"

    async def test_insufficient_credits(
        self, client: AsyncClient, seeded_session: AsyncSession, force_balance
    ) -> None:
        await client.post("/accounts/user-1")
        await force_balance(seeded_session, "user-1", 1999)

        response = await client.post("/accounts/user-1/packs/open", json={"pack_type": "ultimate"})

        assert response.status_code == 400
        failure = response.json()["failure"]
        assert failure["kind"] == "insufficient_credits"
        assert failure["available"] == 1999

        balance = await client.get("/accounts/user-1/balance")
        assert balance.json()["balance"] == 1999

    async def test_empty_catalog(self, client: AsyncClient) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/packs/open", json={})

        assert response.status_code == 503
        assert response.json()["failure"]["kind"] == "catalog_misconfigured"

        balance = await client.get("/accounts/user-1/balance")
        assert balance.json()["balance"] == 3500


class TestPackHistory:
    async def test_history(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        await client.post("/accounts/user-1")
        await client.post("/accounts/user-1/packs/open", json={"pack_type": "standard"})

        response = await client.get("/accounts/user-1/packs/history")

        assert response.status_code == 200
        openings = response.json()["openings"]
        assert len(openings) == 1
        assert openings[0]["pack_type"] == "standard"
        assert len(openings[0]["card_ids"]) == 5

    async def test_history_unknown_account(self, client: AsyncClient) -> None:
        response = await client.get("/accounts/nobody/packs/history")

        assert response.status_code == 404
