"""Tests for card valuation and selling endpoints."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession


async def _open_pack(client: AsyncClient) -> list[dict]:
    await client.post("/accounts/user-1")
    response = await client.post("/accounts/user-1/packs/open", json={"pack_type": "standard"})
    return response.json()["cards"]


class TestCardValue:
    async def test_card_value(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        response = await client.get("/cards/3/value")

        assert response.status_code == 200
        data = response.json()
        assert data["card"]["name"] == "Firstkiller"
        assert data["base_value"] == 75
        assert data["rating_multiplier"] == 1.5
        assert data["sell_value"] == 112

    async def test_unknown_card(self, client: AsyncClient) -> None:
        response = await client.get("/cards/999/value")

        assert response.status_code == 404
        assert response.json()["failure"]["kind"] == "not_found"


class TestSellCard:
    async def test_sell_one_copy(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        cards = await _open_pack(client)
        card = cards[0]
        owned = sum(1 for c in cards if c["id"] == card["id"])

        response = await client.post(
            f"/accounts/user-1/cards/{card['id']}/sell", json={"quantity": 1}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["credits_earned"] == card["sell_value"]
        assert data["new_balance"] == 3000 + card["sell_value"]
        assert data["remaining_quantity"] == owned - 1

    async def test_sell_more_than_owned(
        self, client: AsyncClient, seeded_session: AsyncSession
    ) -> None:
        cards = await _open_pack(client)
        card = cards[0]
        owned = sum(1 for c in cards if c["id"] == card["id"])

        response = await client.post(
            f"/accounts/user-1/cards/{card['id']}/sell", json={"quantity": owned + 1}
        )

        assert response.status_code == 400
        failure = response.json()["failure"]
        assert failure["kind"] == "insufficient_quantity"
        assert failure["available"] == owned

        balance = await client.get("/accounts/user-1/balance")
        assert balance.json()["balance"] == 3000

    async def test_sell_unowned(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/cards/1/sell", json={"quantity": 1})

        assert response.status_code == 404
        assert response.json()["failure"]["message"] == "Card not found in collection."

    async def test_zero_quantity(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/cards/1/sell", json={"quantity": 0})

        assert response.status_code == 400
        assert response.json()["failure"]["kind"] == "invalid_input"


class TestSaleHistory:
    async def test_sales_listed(self, client: AsyncClient, seeded_session: AsyncSession) -> None:
        cards = await _open_pack(client)
        card = cards[0]
        await client.post(f"/accounts/user-1/cards/{card['id']}/sell", json={"quantity": 1})

        response = await client.get("/accounts/user-1/sales")

        assert response.status_code == 200
        data = response.json()
        assert data["total_sold"] == 1
        assert data["total_credits_earned"] == card["sell_value"]
        assert data["recent_sales"][0]["card_id"] == card["id"]
