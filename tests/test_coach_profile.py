import pytest
from httpx import AsyncClient

from easyworkout.config import settings

API = settings.API_PREFIX


@pytest.mark.asyncio
async def test_default_profile_lifecycle(client: AsyncClient):
    missing = await client.get(f"{API}/coach-profile")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Coach profile not found"

    first = await client.post(f"{API}/coach-profile", json={
        "name": "Sam Carter",
        "pdfTextColor": "1E40AF",
        "instagram": "samlifts",
        "showWatermark": False,
    })
    assert first.status_code == 201
    body = first.json()
    assert body["isDefault"] is True
    assert body["pdfTextColor"] == "#1E40AF"
    assert body["showWatermark"] is False

    second = await client.post(f"{API}/coach-profile", json={"name": "Backup profile"})
    assert second.json()["isDefault"] is False

    current = await client.get(f"{API}/coach-profile")
    assert current.json()["id"] == body["id"]

    updated = await client.put(f"{API}/coach-profile/{body['id']}", json={"website": "samlifts.com"})
    assert updated.json()["website"] == "samlifts.com"
    assert updated.json()["name"] == "Sam Carter"

    fetched = await client.get(f"{API}/coach-profile/{second.json()['id']}")
    assert fetched.json()["name"] == "Backup profile"


@pytest.mark.asyncio
async def test_profile_rejects_bad_colour(client: AsyncClient):
    response = await client.post(f"{API}/coach-profile", json={"pdfLineColor": "blue"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_missing_profile(client: AsyncClient):
    response = await client.put(f"{API}/coach-profile/nope", json={"name": "x"})
    assert response.status_code == 404
