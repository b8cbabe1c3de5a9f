from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.auth.dependencies import OptionalIdentity
from easyworkout.database import get_db
from easyworkout.editor import new_id
from easyworkout.models import CoachProfile
from easyworkout.schemas import CoachProfileCreate, CoachProfileResponse, CoachProfileUpdate
from easyworkout.services.backup_service import get_default_coach_profile
from easyworkout.services.cloud_backup_service import AutoBackup, schedule_auto_backup

router = APIRouter()


def _normalize_color(value: str | None) -> str | None:
    if value and not value.startswith("#"):
        return f"#{value}"
    return value


@router.get("", response_model=CoachProfileResponse)
async def get_current_profile(db: Annotated[AsyncSession, Depends(get_db)]):
    profile = await get_default_coach_profile(db)
    if not profile:
        raise HTTPException(status_code=404, detail="Coach profile not found")
    return profile


@router.get("/{profile_id}", response_model=CoachProfileResponse)
async def get_profile(profile_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    profile = await db.get(CoachProfile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Coach profile not found")
    return profile


@router.post("", response_model=CoachProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: CoachProfileCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    fields = payload.model_dump(exclude={"id"})
    fields["pdf_text_color"] = _normalize_color(fields["pdf_text_color"])
    fields["pdf_line_color"] = _normalize_color(fields["pdf_line_color"])
    is_first = await get_default_coach_profile(db) is None
    profile = CoachProfile(id=payload.id or new_id(), is_default=is_first, **fields)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return profile


@router.put("/{profile_id}", response_model=CoachProfileResponse)
async def update_profile(
    profile_id: str,
    payload: CoachProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    profile = await db.get(CoachProfile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Coach profile not found")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("show_watermark") is None:
        changes.pop("show_watermark", None)
    for key in ("pdf_text_color", "pdf_line_color"):
        if key in changes:
            changes[key] = _normalize_color(changes[key])
    for key, value in changes.items():
        setattr(profile, key, value)
    await db.commit()
    await db.refresh(profile)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return profile
