import pytest
from httpx import AsyncClient

from easyworkout.config import settings

API = settings.API_PREFIX


@pytest.mark.asyncio
async def test_glossary_crud_and_search(client: AsyncClient, png_pixel):
    squat = await client.post(f"{API}/glossary", json={
        "name": "Back squat", "description": "Bar on traps, break at hips", "images": [png_pixel],
    })
    assert squat.status_code == 201
    await client.post(f"{API}/glossary", json={"name": "Plank"})

    listed = await client.get(f"{API}/glossary")
    assert [e["name"] for e in listed.json()] == ["Back squat", "Plank"]
    assert listed.json()[1]["images"] == []

    by_description = await client.get(f"{API}/glossary", params={"q": "traps"})
    assert [e["name"] for e in by_description.json()] == ["Back squat"]

    entry_id = squat.json()["id"]
    updated = await client.put(f"{API}/glossary/{entry_id}", json={"images": []})
    assert updated.json()["images"] == []
    assert updated.json()["description"] == "Bar on traps, break at hips"

    assert (await client.delete(f"{API}/glossary/{entry_id}")).status_code == 204
    missing = await client.get(f"{API}/glossary/{entry_id}")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Glossary entry not found"


@pytest.mark.asyncio
async def test_glossary_name_required(client: AsyncClient):
    response = await client.post(f"{API}/glossary", json={"description": "nameless"})
    assert response.status_code == 400
