import asyncio
import json
from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from easyworkout.config import settings
from easyworkout.core.exceptions import BackupFormatError
from easyworkout.models import Client, CloudBackup, Workout
from easyworkout.services import backup_service, cloud_backup_service
from easyworkout.services.cloud_backup_service import AutoBackupScheduler

API = settings.API_PREFIX


async def _seed_store(client: AsyncClient) -> None:
    await client.post(f"{API}/workouts", json={
        "id": "prog-1",
        "clientName": "Maria Lopez",
        "weeks": [{"id": "w1", "name": "Week 1", "number": 1, "days": [
            {"id": "d1", "name": "Push", "exercises": [{"id": "e1", "name": "Bench", "reps": "5"}]},
        ]}],
    })
    await client.post(f"{API}/clients", json={"id": "cli-1", "name": "Maria Lopez", "email": "maria@example.com"})
    await client.post(f"{API}/coach-profile", json={"name": "Sam", "pdfLineColor": "#111111"})


def test_backup_filename_uses_date():
    assert backup_service.backup_filename(date(2024, 3, 9)) == "fittracker-backup-2024-03-09.json"


@pytest.mark.asyncio
async def test_export_then_import_restores_everything(client: AsyncClient):
    await _seed_store(client)

    exported = await client.get(f"{API}/backup/export")
    assert exported.status_code == 200
    assert 'attachment; filename="fittracker-backup-' in exported.headers["content-disposition"]
    document = exported.json()
    assert [w["id"] for w in document["workouts"]] == ["prog-1"]
    assert document["workouts"][0]["weeks"][0]["days"][0]["exercises"][0]["reps"] == "5"
    assert document["coachProfile"]["name"] == "Sam"

    await client.delete(f"{API}/workouts/prog-1")
    await client.delete(f"{API}/clients/cli-1")

    imported = await client.post(f"{API}/backup/import", json=document)
    assert imported.status_code == 200
    assert imported.json()["imported"] == {"workouts": 1, "clients": 1, "coachProfile": 1}

    again = (await client.get(f"{API}/backup/export")).json()
    assert again == document


@pytest.mark.asyncio
async def test_import_only_replaces_collections_present(client: AsyncClient):
    await _seed_store(client)

    response = await client.post(f"{API}/backup/import", json={"clients": []})

    assert response.status_code == 200
    assert (await client.get(f"{API}/clients")).json() == []
    assert [w["id"] for w in (await client.get(f"{API}/workouts")).json()] == ["prog-1"]
    assert (await client.get(f"{API}/coach-profile")).json()["name"] == "Sam"


@pytest.mark.asyncio
@pytest.mark.parametrize("document, fragment", [
    ([], "backup must be a JSON object"),
    ({"workouts": {"id": "x"}}, "'workouts' must be a list"),
    ({"coachProfile": []}, "'coachProfile' must be an object"),
    ({"workouts": [{"id": "x", "weeks": []}]}, "workouts.0"),
])
async def test_malformed_import_is_rejected_before_writing(client: AsyncClient, document, fragment):
    await _seed_store(client)

    response = await client.post(f"{API}/backup/import", json=document)

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid backup file:")
    assert fragment in response.json()["message"]
    assert len((await client.get(f"{API}/workouts")).json()) == 1


@pytest.mark.asyncio
async def test_merge_is_last_write_wins(session_factory):
    async with session_factory() as db:
        db.add(Workout(id="prog-1", client_name="Local", weeks=[]))
        db.add(Workout(id="prog-2", client_name="Local too", weeks=[]))
        db.add(Client(id="cli-1", name="Local client"))
        await db.commit()

    document = {
        "workouts": [
            {"id": "prog-1", "clientName": "Remote newer", "weeks": [],
             "createdAt": "2020-01-01T00:00:00Z", "updatedAt": "2999-01-01T00:00:00Z"},
            {"id": "prog-2", "clientName": "Remote older", "weeks": [],
             "createdAt": "2020-01-01T00:00:00Z", "updatedAt": "2000-01-01T00:00:00Z"},
            {"id": "prog-3", "clientName": "Remote only", "weeks": [],
             "createdAt": "2020-01-01T00:00:00Z", "updatedAt": "2020-01-01T00:00:00Z"},
        ],
        "clients": [
            {"id": "cli-1", "name": "Remote client", "createdAt": "2020-01-01T00:00:00Z"},
            {"id": "cli-2", "name": "New client", "createdAt": "2020-01-01T00:00:00Z"},
        ],
        "coachProfile": {"name": "Remote coach"},
    }

    async with session_factory() as db:
        summary = await backup_service.merge_document(db, document)

    assert summary == {"workoutsAdded": 1, "workoutsUpdated": 1, "clientsAdded": 1, "coachProfileAdopted": 1}
    async with session_factory() as db:
        names = {w.id: w.client_name for w in (await db.execute(select(Workout))).scalars()}
        assert names == {"prog-1": "Remote newer", "prog-2": "Local too", "prog-3": "Remote only"}
        assert (await db.get(Client, "cli-1")).name == "Local client"
        profile = await backup_service.get_default_coach_profile(db)
        assert profile.name == "Remote coach" and profile.is_default


def test_validate_document_reports_location():
    with pytest.raises(BackupFormatError, match="clients.0"):
        backup_service.validate_document({"clients": [{"id": "c"}]})


@pytest.mark.asyncio
async def test_cloud_routes_require_identity(client: AsyncClient):
    for path in ("export", "restore", "sync"):
        response = await client.post(f"{API}/backup/cloud/{path}")
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_cloud_export_restore_and_sync(client: AsyncClient, identity_provider, auth_headers):
    skipped = await client.post(f"{API}/backup/cloud/sync", headers=auth_headers)
    assert skipped.json() == {"status": "skipped", "reason": "no cloud backup"}

    missing = await client.post(f"{API}/backup/cloud/restore", headers=auth_headers)
    assert missing.status_code == 404

    await _seed_store(client)
    exported = await client.post(f"{API}/backup/cloud/export", headers=auth_headers)
    assert exported.status_code == 200
    assert exported.json()["path"] == "coach-1/data.json"
    uploaded = json.loads(identity_provider.blobs["coach-1/data.json"])
    assert [w["id"] for w in uploaded["workouts"]] == ["prog-1"]

    stats = (await client.get(f"{API}/backup/stats", headers=auth_headers)).json()
    assert stats["workoutsCount"] == 1 and stats["clientsCount"] == 1
    assert stats["lastBackup"] is not None

    not_empty = await client.post(f"{API}/backup/cloud/sync", headers=auth_headers)
    assert not_empty.json()["status"] == "skipped"

    await client.delete(f"{API}/workouts/prog-1")
    restored = await client.post(f"{API}/backup/cloud/restore", headers=auth_headers)
    assert restored.status_code == 200
    assert restored.json()["merged"]["workoutsAdded"] == 1
    assert (await client.get(f"{API}/workouts/prog-1")).status_code == 200


@pytest.mark.asyncio
async def test_sync_imports_into_empty_store(client: AsyncClient, identity_provider, auth_headers):
    identity_provider.blobs["coach-1/data.json"] = json.dumps({
        "workouts": [{"id": "prog-9", "clientName": "Cloud client", "weeks": [],
                      "createdAt": "2024-01-01T00:00:00Z", "updatedAt": "2024-01-02T00:00:00Z"}],
        "clients": [],
        "coachProfile": None,
    }).encode()

    response = await client.post(f"{API}/backup/cloud/sync", headers=auth_headers)

    assert response.json()["status"] == "imported"
    assert response.json()["workoutsAdded"] == 1
    assert (await client.get(f"{API}/workouts/prog-9")).json()["clientName"] == "Cloud client"


@pytest.mark.asyncio
async def test_corrupt_cloud_backup_is_a_format_error(client: AsyncClient, identity_provider, auth_headers):
    identity_provider.blobs["coach-1/data.json"] = b"{not json"

    response = await client.post(f"{API}/backup/cloud/restore", headers=auth_headers)

    assert response.status_code == 400
    assert "not valid JSON" in response.json()["message"]


@pytest.mark.asyncio
async def test_provider_failure_is_502(client: AsyncClient, identity_provider, auth_headers):
    identity_provider.fail_with = "storage offline"

    response = await client.post(f"{API}/backup/cloud/export", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["message"] == "storage offline"


@pytest.mark.asyncio
async def test_export_to_cloud_keeps_one_record_per_identity(session_factory, identity_provider):
    async with session_factory() as db:
        db.add(Workout(client_name="Ana", weeks=[]))
        await db.commit()
        await cloud_backup_service.export_to_cloud(db, identity_provider, "coach-9")
        await cloud_backup_service.export_to_cloud(db, identity_provider, "coach-9")
        count = (await db.execute(select(func.count(CloudBackup.identity_id)))).scalar_one()

    assert count == 1
    assert list(identity_provider.blobs) == ["coach-9/data.json"]


@pytest.mark.asyncio
async def test_scheduler_collapses_bursts_into_one_run():
    scheduler = AutoBackupScheduler(delay_seconds=0.05)
    runs: list[str] = []

    async def job():
        runs.append("backup")

    for _ in range(3):
        assert scheduler.schedule("coach-1", job)
    await asyncio.sleep(0.2)

    assert runs == ["backup"]
    assert not scheduler.is_pending("coach-1")


@pytest.mark.asyncio
async def test_scheduler_pause_disable_and_shutdown():
    runs: list[str] = []

    async def job():
        runs.append("backup")

    disabled = AutoBackupScheduler(delay_seconds=0.01, enabled=False)
    assert disabled.schedule("coach-1", job) is False

    scheduler = AutoBackupScheduler(delay_seconds=10)
    with scheduler.paused():
        assert scheduler.schedule("coach-1", job) is False
    with scheduler.paused("coach-1"):
        assert scheduler.schedule("coach-1", job) is False
        assert scheduler.schedule("coach-2", job)
    assert not scheduler.is_paused("coach-1")
    await scheduler.shutdown()

    slow = AutoBackupScheduler(delay_seconds=10)
    assert slow.schedule("coach-1", job)
    await slow.shutdown()
    assert not slow.is_pending("coach-1")
    assert runs == []
