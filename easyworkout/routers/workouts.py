import logging
from typing import Annotated, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.auth.dependencies import CurrentIdentity, OptionalIdentity
from easyworkout.core.exceptions import DocumentRenderError
from easyworkout.database import get_db
from easyworkout.editor import Move, ProgramEditor, dump_weeks, load_weeks, new_id
from easyworkout.models import GlossaryEntry, Workout
from easyworkout.schemas import ApiModel, WorkoutCreate, WorkoutResponse, WorkoutUpdate
from easyworkout.services import pdf_service
from easyworkout.services.backup_service import get_default_coach_profile
from easyworkout.services.cloud_backup_service import AutoBackup, schedule_auto_backup

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Editor payloads =====

class WeekChanges(ApiModel):
    name: Optional[str] = None
    number: Optional[int] = None
    notes: Optional[str] = None


class DayChanges(ApiModel):
    name: Optional[str] = None
    notes: Optional[str] = None


class ExerciseChanges(ApiModel):
    name: Optional[str] = None
    sets: Optional[str] = None
    reps: Optional[str] = None
    rest: Optional[str] = None
    notes: Optional[str] = None
    order: Optional[int] = None


class ExerciseAdd(ApiModel):
    glossary_id: Optional[str] = None


async def _get_workout_or_404(db: AsyncSession, workout_id: str) -> Workout:
    workout = await db.get(Workout, workout_id)
    if not workout:
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout


def _editor_for(workout: Workout) -> ProgramEditor:
    def persist(weeks):
        workout.weeks = dump_weeks(weeks)

    return ProgramEditor(load_weeks(workout.weeks), on_change=persist)


async def _save(db: AsyncSession, workout: Workout, scheduler, identity) -> Workout:
    await db.commit()
    await db.refresh(workout)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return workout


# ===== CRUD =====

@router.get("", response_model=List[WorkoutResponse])
async def list_workouts(db: Annotated[AsyncSession, Depends(get_db)]):
    result = await db.execute(select(Workout).order_by(Workout.updated_at.desc()))
    return result.scalars().all()


@router.post("", response_model=WorkoutResponse, status_code=status.HTTP_201_CREATED)
async def create_workout(
    payload: WorkoutCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = Workout(
        id=payload.id or new_id(),
        coach_id=identity.id if identity else None,
        client_name=payload.client_name,
        coach_name=payload.coach_name,
        workout_type=payload.workout_type,
        description=payload.description,
        client_comment=payload.client_comment,
        weeks=dump_weeks(payload.weeks),
    )
    db.add(workout)
    await db.commit()
    await db.refresh(workout)
    logger.info("Workout %s created for %s", workout.id, workout.client_name)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return workout


@router.get("/{workout_id}", response_model=WorkoutResponse)
async def get_workout(workout_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await _get_workout_or_404(db, workout_id)


@router.put("/{workout_id}", response_model=WorkoutResponse)
async def update_workout(
    workout_id: str,
    payload: WorkoutUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("client_name") is None:
        changes.pop("client_name", None)
    if "weeks" in changes:
        if payload.weeks is None:
            changes.pop("weeks")
        else:
            changes["weeks"] = dump_weeks(payload.weeks)
    for key, value in changes.items():
        setattr(workout, key, value)
    return await _save(db, workout, scheduler, identity)


@router.delete("/{workout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workout(
    workout_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    await db.delete(workout)
    await db.commit()
    logger.info("Workout %s deleted", workout_id)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== Program editor =====

@router.post("/{workout_id}/reorder", response_model=WorkoutResponse)
async def reorder_program(
    workout_id: str,
    move: Move,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    if not _editor_for(workout).move(move):
        return workout
    return await _save(db, workout, scheduler, identity)


@router.post("/{workout_id}/weeks", response_model=WorkoutResponse, status_code=status.HTTP_201_CREATED)
async def add_week(
    workout_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    _editor_for(workout).add_week()
    return await _save(db, workout, scheduler, identity)


@router.patch("/{workout_id}/weeks/{week_id}", response_model=WorkoutResponse)
async def update_week(
    workout_id: str,
    week_id: str,
    payload: WeekChanges,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    editor = _editor_for(workout)
    if not any(week.id == week_id for week in editor.weeks):
        raise HTTPException(status_code=404, detail="Week not found")
    if not editor.update_week(week_id, **payload.model_dump(exclude_none=True)):
        return workout
    return await _save(db, workout, scheduler, identity)


@router.delete("/{workout_id}/weeks/{week_id}", response_model=WorkoutResponse)
async def remove_week(
    workout_id: str,
    week_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    if not _editor_for(workout).remove_week(week_id):
        raise HTTPException(status_code=404, detail="Week not found")
    return await _save(db, workout, scheduler, identity)


@router.post(
    "/{workout_id}/weeks/{week_id}/days",
    response_model=WorkoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_day(
    workout_id: str,
    week_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    if _editor_for(workout).add_day(week_id) is None:
        raise HTTPException(status_code=404, detail="Week not found")
    return await _save(db, workout, scheduler, identity)


def _require_day(editor: ProgramEditor, week_id: str, day_id: str) -> None:
    week = next((week for week in editor.weeks if week.id == week_id), None)
    if week is None or not any(day.id == day_id for day in week.days):
        raise HTTPException(status_code=404, detail="Day not found")


@router.patch("/{workout_id}/weeks/{week_id}/days/{day_id}", response_model=WorkoutResponse)
async def update_day(
    workout_id: str,
    week_id: str,
    day_id: str,
    payload: DayChanges,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    editor = _editor_for(workout)
    _require_day(editor, week_id, day_id)
    if not editor.update_day(week_id, day_id, **payload.model_dump(exclude_none=True)):
        return workout
    return await _save(db, workout, scheduler, identity)


@router.delete("/{workout_id}/weeks/{week_id}/days/{day_id}", response_model=WorkoutResponse)
async def remove_day(
    workout_id: str,
    week_id: str,
    day_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    if not _editor_for(workout).remove_day(week_id, day_id):
        raise HTTPException(status_code=404, detail="Day not found")
    return await _save(db, workout, scheduler, identity)


@router.post(
    "/{workout_id}/weeks/{week_id}/days/{day_id}/exercises",
    response_model=WorkoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_exercise(
    workout_id: str,
    week_id: str,
    day_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
    payload: ExerciseAdd | None = None,
):
    workout = await _get_workout_or_404(db, workout_id)
    editor = _editor_for(workout)
    _require_day(editor, week_id, day_id)
    if payload and payload.glossary_id:
        entry = await db.get(GlossaryEntry, payload.glossary_id)
        if not entry:
            raise HTTPException(status_code=404, detail="Glossary entry not found")
        editor.add_glossary_exercise(week_id, day_id, entry)
    else:
        editor.add_exercise(week_id, day_id)
    return await _save(db, workout, scheduler, identity)


@router.patch(
    "/{workout_id}/weeks/{week_id}/days/{day_id}/exercises/{exercise_id}",
    response_model=WorkoutResponse,
)
async def update_exercise(
    workout_id: str,
    week_id: str,
    day_id: str,
    exercise_id: str,
    payload: ExerciseChanges,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    editor = _editor_for(workout)
    if not editor.has_exercise(week_id, day_id, exercise_id):
        raise HTTPException(status_code=404, detail="Exercise not found")
    if not editor.update_exercise(week_id, day_id, exercise_id, **payload.model_dump(exclude_none=True)):
        return workout
    return await _save(db, workout, scheduler, identity)


@router.delete(
    "/{workout_id}/weeks/{week_id}/days/{day_id}/exercises/{exercise_id}",
    response_model=WorkoutResponse,
)
async def remove_exercise(
    workout_id: str,
    week_id: str,
    day_id: str,
    exercise_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    workout = await _get_workout_or_404(db, workout_id)
    if not _editor_for(workout).remove_exercise(week_id, day_id, exercise_id):
        raise HTTPException(status_code=404, detail="Exercise not found")
    return await _save(db, workout, scheduler, identity)


# ===== PDF export =====

@router.get("/{workout_id}/pdf")
async def export_workout_pdf(
    workout_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: CurrentIdentity,
    preview: bool = False,
    glossary_ids: Annotated[list[str] | None, Query(alias="glossaryIds")] = None,
):
    workout = WorkoutResponse.model_validate(await _get_workout_or_404(db, workout_id))
    wanted = [part.strip() for value in glossary_ids or [] for part in value.split(",") if part.strip()]
    extra: list[GlossaryEntry] = []
    if wanted:
        result = await db.execute(select(GlossaryEntry).where(GlossaryEntry.id.in_(wanted)))
        by_id = {entry.id: entry for entry in result.scalars().all()}
        extra = [by_id[entry_id] for entry_id in dict.fromkeys(wanted) if entry_id in by_id]
    profile = await get_default_coach_profile(db)

    try:
        content = pdf_service.render_workout_pdf(workout, profile, extra)
    except DocumentRenderError:
        raise HTTPException(status_code=500, detail="Failed to generate PDF")

    disposition = "inline" if preview else "attachment"
    filename = f"program-{pdf_service.slugify(workout.client_name)}.pdf"
    original = quote(f"program-{workout.client_name}.pdf")
    logger.info("Program %s exported as PDF by %s", workout_id, identity.id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"{disposition}; filename=\"{filename}\"; filename*=UTF-8''{original}"},
    )
