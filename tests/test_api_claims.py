"""Tests for credit claim endpoints."""

from httpx import AsyncClient


class TestDailyClaim:
    async def test_status_before_claim(self, client: AsyncClient) -> None:
        await client.post("/accounts/user-1")

        response = await client.get("/accounts/user-1/claims/daily")

        assert response.status_code == 200
        data = response.json()
        assert data["can_claim"] is True
        assert data["state"] == "no_claim_yet"
        assert data["amount"] == 250

    async def test_claim_then_refused(self, client: AsyncClient, clock) -> None:
        await client.post("/accounts/user-1")

        first = await client.post("/accounts/user-1/claims/daily")
        clock.advance(hours=6)
        second = await client.post("/accounts/user-1/claims/daily")

        assert first.status_code == 200
        assert first.json()["granted"] is True
        assert first.json()["new_balance"] == 3750

        assert second.status_code == 200
        assert second.json()["granted"] is False
        assert second.json()["amount"] == 0
        assert second.json()["new_balance"] == 3750
        assert second.json()["wait_seconds"] == 6 * 3600

    async def test_claim_next_day(self, client: AsyncClient, clock) -> None:
        await client.post("/accounts/user-1")
        await client.post("/accounts/user-1/claims/daily")

        clock.advance(hours=12, minutes=1)
        response = await client.post("/accounts/user-1/claims/daily")

        assert response.json()["granted"] is True
        assert response.json()["new_balance"] == 4000

    async def test_unknown_account(self, client: AsyncClient) -> None:
        response = await client.post("/accounts/nobody/claims/daily")

        assert response.status_code == 404


class TestHourlyClaim:
    async def test_too_soon(self, client: AsyncClient) -> None:
        await client.post("/accounts/user-1")

        response = await client.post("/accounts/user-1/claims/hourly")

        assert response.status_code == 200
        assert response.json()["granted"] is False
        assert response.json()["wait_seconds"] == 3600

    async def test_single_tick(self, client: AsyncClient, clock) -> None:
        await client.post("/accounts/user-1")

        clock.advance(hours=3)
        first = await client.post("/accounts/user-1/claims/hourly")
        second = await client.post("/accounts/user-1/claims/hourly")

        assert first.json()["granted"] is True
        assert first.json()["new_balance"] == 3510
        assert second.json()["granted"] is False
