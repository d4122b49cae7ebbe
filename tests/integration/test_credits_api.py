"""Integration tests for credit endpoints"""

import pytest
from uuid import uuid4
from fastapi import status

from backend.app.core.config import settings
from backend.app.models.user import UserRole
from tests.factories import approved_profile, auth_headers, create_user

pytestmark = pytest.mark.integration


async def grant(client, admin, user, amount, **extra):
    response = await client.post(
        "/api/v1/credits/grant",
        json={"user_id": str(user.id), "amount": amount, **extra},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["data"]


class TestCreditsAPI:
    """Integration tests for balance, deduct, grant and history"""

    @pytest.mark.asyncio
    async def test_new_account_has_zero_balance(self, client, company):
        response = await client.get("/api/v1/credits", headers=auth_headers(company))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["balance"] == 0
        assert data["total_granted"] == 0
        assert data["user_id"] == str(company.id)

    @pytest.mark.asyncio
    async def test_grant_and_balance(self, client, admin, company):
        transaction = await grant(client, admin, company, 5, note="welcome pack")

        assert transaction["delta"] == 5
        assert transaction["resulting_balance"] == 5
        assert transaction["reason"] == "admin_grant"

        response = await client.get("/api/v1/credits", headers=auth_headers(company))
        assert response.json()["data"]["balance"] == 5
        assert response.json()["data"]["total_granted"] == 5

    @pytest.mark.asyncio
    async def test_grant_to_unknown_user(self, client, admin):
        response = await client.post(
            "/api/v1/credits/grant",
            json={"user_id": str(uuid4()), "amount": 5},
            headers=auth_headers(admin),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_grant_rejects_deduction_reason(self, client, admin, company):
        response = await client.post(
            "/api/v1/credits/grant",
            json={"user_id": str(company.id), "amount": 5, "reason": "profile_unlock"},
            headers=auth_headers(admin),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_companies_cannot_grant(self, client, company):
        response = await client.post(
            "/api/v1/credits/grant",
            json={"user_id": str(company.id), "amount": 5},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_deduct_unlocks_profile_once(self, client, db_session, admin, company):
        _, profile = await approved_profile(db_session, admin)
        await grant(client, admin, company, 3)
        body = {"amount": 1, "profile_id": str(profile.id)}

        first = await client.post("/api/v1/credits/deduct", json=body, headers=auth_headers(company))
        second = await client.post("/api/v1/credits/deduct", json=body, headers=auth_headers(company))

        assert first.status_code == status.HTTP_200_OK
        assert first.json()["data"]["charged"] == 1
        assert first.json()["data"]["balance"] == 2
        assert first.json()["data"]["transaction_id"] is not None
        assert second.status_code == status.HTTP_200_OK
        assert second.json()["data"]["already_unlocked"] is True
        assert second.json()["data"]["charged"] == 0
        assert second.json()["data"]["transaction_id"] is None

    @pytest.mark.asyncio
    async def test_deduct_insufficient(self, client, db_session, admin, company, monkeypatch):
        monkeypatch.setattr(settings, "PROFILE_UNLOCK_COST", 2)
        _, profile = await approved_profile(db_session, admin)
        await grant(client, admin, company, 1)

        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 2, "profile_id": str(profile.id)},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "insufficient_credits"
        balance = await client.get("/api/v1/credits", headers=auth_headers(company))
        assert balance.json()["data"]["balance"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [1, 4, 6])
    async def test_unlock_deduction_must_match_unlock_cost(self, client, db_session, admin, company, monkeypatch, amount):
        monkeypatch.setattr(settings, "PROFILE_UNLOCK_COST", 5)
        _, profile = await approved_profile(db_session, admin)
        await grant(client, admin, company, 10)
        profile_id = str(profile.id)

        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": amount, "profile_id": profile_id},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"] == {"amount": amount, "unlock_cost": 5}
        balance = await client.get("/api/v1/credits", headers=auth_headers(company))
        assert balance.json()["data"]["balance"] == 10
        view = await client.get(f"/api/v1/profile/{profile_id}", headers=auth_headers(company))
        assert view.json()["data"]["identity_revealed"] is False

        unlock = await client.post(f"/api/v1/profile/{profile_id}/unlock", headers=auth_headers(company))
        assert unlock.json()["data"]["charged"] == 5
        assert unlock.json()["data"]["balance"] == 5

    @pytest.mark.asyncio
    async def test_unlock_deduction_at_unlock_cost(self, client, db_session, admin, company, monkeypatch):
        monkeypatch.setattr(settings, "PROFILE_UNLOCK_COST", 5)
        _, profile = await approved_profile(db_session, admin)
        await grant(client, admin, company, 5)

        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 5, "profile_id": str(profile.id)},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["charged"] == 5
        assert response.json()["data"]["balance"] == 0

    @pytest.mark.asyncio
    async def test_deduct_for_inactive_profile(self, client, admin, company, candidate):
        created = await client.post("/api/v1/profile", json={}, headers=auth_headers(candidate))
        await grant(client, admin, company, 1)

        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 1, "profile_id": created.json()["data"]["id"]},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unlock_deduction_requires_profile(self, client, company):
        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 1},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, "1", 1.5])
    async def test_deduct_rejects_invalid_amounts(self, client, company, amount):
        response = await client.post(
            "/api/v1/credits/deduct",
            json={"amount": amount, "reason": "admin_deduction"},
            headers=auth_headers(company),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_history_reports_consistency(self, client, db_session, admin, company):
        _, profile = await approved_profile(db_session, admin)
        await grant(client, admin, company, 4)
        await grant(client, admin, company, 2, reason="purchase")
        await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 1, "profile_id": str(profile.id)},
            headers=auth_headers(company),
        )
        await client.post(
            "/api/v1/credits/deduct",
            json={"amount": 3, "reason": "admin_deduction", "note": "chargeback"},
            headers=auth_headers(company),
        )

        response = await client.get("/api/v1/credits/history", headers=auth_headers(company))

        data = response.json()["data"]
        assert data["balance"] == 2
        assert data["total_added"] == 6
        assert data["total_used"] == 4
        assert data["consistent"] is True
        assert [t["delta"] for t in data["transactions"]] == [4, 2, -1, -3]
        assert [t["resulting_balance"] for t in data["transactions"]] == [4, 6, 5, 2]

        page = await client.get(
            "/api/v1/credits/history", params={"skip": 1, "limit": 2}, headers=auth_headers(company)
        )
        assert [t["delta"] for t in page.json()["data"]["transactions"]] == [2, -1]

    @pytest.mark.asyncio
    async def test_balances_are_per_user(self, client, db_session, admin, company):
        other = await create_user(db_session, role=UserRole.COMPANY)
        await grant(client, admin, company, 3)

        response = await client.get("/api/v1/credits", headers=auth_headers(other))

        assert response.json()["data"]["balance"] == 0
