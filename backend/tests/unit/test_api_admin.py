"""Tests for the admin API router."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from pydantic import SecretStr

from greeter.core.config import settings
from greeter.providers.email.memory_adapter import MemoryEmailTransport
from greeter.providers.errors import TransientError
from greeter.providers.platform.memory_adapter import MemoryDirectory
from greeter.services.onboarding_flow import OnboardingFlow
from tests.conftest import TEST_USER_ID, VALID_EMAIL, VALID_NAME

_ADMIN = "/api/v1/admin"
_ADMIN_TOKEN = "a" * 40


class TestCatalogRefresh:
    """POST /admin/catalog/refresh."""

    async def test_reports_snapshot(
        self, client: AsyncClient, directory: MemoryDirectory
    ) -> None:
        directory.delete_role("Diploma")

        response = await client.post(f"{_ADMIN}/catalog/refresh")

        assert response.status_code == 200
        data = response.json()["data"]
        assert "Diploma" not in data["available_roles"]
        assert data["available_roles"] == sorted(data["available_roles"])
        assert data["offered_categories"] == ["Programme Level", "Interests"]
        assert data["missing_roles"] == ["Diploma", "Retired Club"]

    async def test_platform_failure(
        self, client: AsyncClient, directory: MemoryDirectory
    ) -> None:
        directory.failures["list_roles"] = TransientError("Discord API 503")

        response = await client.post(f"{_ADMIN}/catalog/refresh")

        assert response.status_code == 502


class TestEmailCheck:
    """POST /admin/test-email."""

    async def test_sends_to_given_address(
        self, client: AsyncClient, email_transport: MemoryEmailTransport
    ) -> None:
        response = await client.post(
            f"{_ADMIN}/test-email", json={"email": "ops@ds.study.iitm.ac.in"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["sent_to"] == "ops@ds.study.iitm.ac.in"
        assert email_transport.last.to_address == "ops@ds.study.iitm.ac.in"

    async def test_requires_address(self, client: AsyncClient) -> None:
        response = await client.post(f"{_ADMIN}/test-email", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_delivery_failure(
        self, client: AsyncClient, email_transport: MemoryEmailTransport
    ) -> None:
        email_transport.fail = True

        response = await client.post(
            f"{_ADMIN}/test-email", json={"email": "ops@ds.study.iitm.ac.in"}
        )

        assert response.status_code == 502


class TestSweep:
    """POST /admin/sweep."""

    async def test_reports_counts(self, client: AsyncClient, flow: OnboardingFlow) -> None:
        await flow.submit_info(TEST_USER_ID, VALID_NAME, VALID_EMAIL)
        flow.codes._challenges[TEST_USER_ID].expires_at = datetime.now(
            UTC
        ) - timedelta(minutes=1)

        response = await client.post(f"{_ADMIN}/sweep")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "challenges_removed": 1,
            "sessions_removed": 1,
        }


class TestAdminToken:
    """Admin commands require X-Admin-Token."""

    @pytest.fixture(autouse=True)
    def admin_token(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "admin_token", SecretStr(_ADMIN_TOKEN))

    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.post(f"{_ADMIN}/sweep")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Admin access required"

    async def test_valid_token(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{_ADMIN}/sweep", headers={"X-Admin-Token": _ADMIN_TOKEN}
        )

        assert response.status_code == 200

    async def test_member_endpoints_do_not_need_admin_token(
        self, client: AsyncClient
    ) -> None:
        response = await client.get(f"/api/v1/onboarding/{TEST_USER_ID}")

        assert response.status_code == 200
