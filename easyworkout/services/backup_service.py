"""Backup document export/import.

The document is a single JSON object::

    {"workouts": [...], "clients": [...], "coachProfile": {...} | null}

Dates are ISO-8601 strings on disk and datetimes in the store. Imports are
validate-then-apply: a malformed document is rejected before anything is
written.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.core.exceptions import BackupFormatError
from easyworkout.editor.tree import dump_weeks
from easyworkout.models import Client, CloudBackup, CoachProfile, Workout
from easyworkout.schemas import (
    ApiModel,
    ClientResponse,
    CoachProfileBase,
    WorkoutResponse,
)

logger = logging.getLogger(__name__)


class CoachProfileRecord(CoachProfileBase):
    id: Optional[str] = None


class BackupDocument(ApiModel):
    workouts: Optional[List[WorkoutResponse]] = None
    clients: Optional[List[ClientResponse]] = None
    coach_profile: Optional[CoachProfileRecord] = None


def as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def backup_filename(today: date | None = None) -> str:
    return f"fittracker-backup-{(today or date.today()).isoformat()}.json"


async def get_default_coach_profile(db: AsyncSession) -> CoachProfile | None:
    stmt = select(CoachProfile).order_by(CoachProfile.is_default.desc())
    result = await db.execute(stmt)
    return result.scalars().first()


async def export_document(db: AsyncSession) -> dict[str, Any]:
    workouts = (await db.execute(select(Workout).order_by(Workout.created_at))).scalars().all()
    clients = (await db.execute(select(Client).order_by(Client.created_at))).scalars().all()
    profile = await get_default_coach_profile(db)
    return {
        "workouts": [
            WorkoutResponse.model_validate(w).model_dump(mode="json", by_alias=True) for w in workouts
        ],
        "clients": [
            ClientResponse.model_validate(c).model_dump(mode="json", by_alias=True) for c in clients
        ],
        "coachProfile": (
            CoachProfileRecord.model_validate(profile).model_dump(mode="json", by_alias=True)
            if profile
            else None
        ),
    }


def validate_document(data: Any) -> BackupDocument:
    if not isinstance(data, dict):
        raise BackupFormatError("backup must be a JSON object")
    for key in ("workouts", "clients"):
        if key in data and data[key] is not None and not isinstance(data[key], list):
            raise BackupFormatError(f"'{key}' must be a list")
    if "coachProfile" in data and data["coachProfile"] is not None and not isinstance(data["coachProfile"], dict):
        raise BackupFormatError("'coachProfile' must be an object")
    try:
        return BackupDocument.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise BackupFormatError(f"{location}: {first['msg']}") from exc


def _workout_row(record: WorkoutResponse) -> Workout:
    return Workout(
        id=record.id,
        coach_id=record.coach_id,
        client_name=record.client_name,
        coach_name=record.coach_name,
        workout_type=record.workout_type,
        description=record.description,
        client_comment=record.client_comment,
        weeks=dump_weeks(record.weeks),
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def _client_row(record: ClientResponse) -> Client:
    return Client(
        id=record.id,
        name=record.name,
        email=record.email,
        phone=record.phone,
        notes=record.notes,
        created_at=as_utc(record.created_at),
    )


def _coach_profile_row(record: CoachProfileRecord) -> CoachProfile:
    fields = record.model_dump(exclude={"id"})
    if record.id:
        fields["id"] = record.id
    return CoachProfile(**fields, is_default=True)


async def import_document(db: AsyncSession, data: Any) -> dict[str, int]:
    """Replace every collection present in the document with its contents."""
    document = validate_document(data)

    if document.workouts is not None:
        await db.execute(delete(Workout))
        db.add_all(_workout_row(record) for record in document.workouts)
    if document.clients is not None:
        await db.execute(delete(Client))
        db.add_all(_client_row(record) for record in document.clients)
    if document.coach_profile is not None:
        await db.execute(delete(CoachProfile))
        db.add(_coach_profile_row(document.coach_profile))
    await db.commit()

    summary = {
        "workouts": len(document.workouts or []),
        "clients": len(document.clients or []),
        "coachProfile": int(document.coach_profile is not None),
    }
    logger.info("Backup imported: %s", summary)
    return summary


async def merge_document(db: AsyncSession, data: Any) -> dict[str, int]:
    """Merge a backup into the store, last write wins by timestamp.

    Workouts are inserted when unknown and replaced when the incoming
    ``updatedAt`` is newer. Clients carry no update time, so existing local
    clients are kept. The coach profile is adopted only if none exists.
    """
    document = validate_document(data)
    summary = {"workoutsAdded": 0, "workoutsUpdated": 0, "clientsAdded": 0, "coachProfileAdopted": 0}

    for record in document.workouts or []:
        existing = await db.get(Workout, record.id)
        if existing is None:
            db.add(_workout_row(record))
            summary["workoutsAdded"] += 1
        elif as_utc(record.updated_at) > as_utc(existing.updated_at):
            row = _workout_row(record)
            for column in ("coach_id", "client_name", "coach_name", "workout_type",
                           "description", "client_comment", "weeks", "created_at"):
                setattr(existing, column, getattr(row, column))
            # explicit value keeps onupdate from stamping the merge time
            existing.updated_at = row.updated_at
            summary["workoutsUpdated"] += 1

    for record in document.clients or []:
        if await db.get(Client, record.id) is None:
            db.add(_client_row(record))
            summary["clientsAdded"] += 1

    if document.coach_profile is not None and await get_default_coach_profile(db) is None:
        db.add(_coach_profile_row(document.coach_profile))
        summary["coachProfileAdopted"] = 1

    await db.commit()
    logger.info("Backup merged: %s", summary)
    return summary


async def is_store_empty(db: AsyncSession) -> bool:
    workouts = (await db.execute(select(func.count(Workout.id)))).scalar_one()
    clients = (await db.execute(select(func.count(Client.id)))).scalar_one()
    return workouts == 0 and clients == 0 and await get_default_coach_profile(db) is None


async def backup_stats(db: AsyncSession, identity_id: str | None) -> dict[str, Any]:
    workouts = (await db.execute(select(func.count(Workout.id)))).scalar_one()
    clients = (await db.execute(select(func.count(Client.id)))).scalar_one()
    last_backup = None
    if identity_id:
        record = await db.get(CloudBackup, identity_id)
        if record:
            last_backup = as_utc(record.last_backup_at)
    return {"workoutsCount": workouts, "clientsCount": clients, "lastBackup": last_backup}
