import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.auth.dependencies import CurrentIdentity
from easyworkout.core.exceptions import DocumentRenderError
from easyworkout.database import get_db
from easyworkout.models import GlossaryEntry
from easyworkout.schemas import GlossaryEntryCreate, GlossaryEntryResponse, GlossaryEntryUpdate
from easyworkout.services import pdf_service
from easyworkout.services.backup_service import get_default_coach_profile

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_entry_or_404(db: AsyncSession, entry_id: str) -> GlossaryEntry:
    entry = await db.get(GlossaryEntry, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Glossary entry not found")
    return entry


@router.get("", response_model=List[GlossaryEntryResponse])
async def list_entries(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: Optional[str] = None,
):
    stmt = select(GlossaryEntry).order_by(GlossaryEntry.name)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(GlossaryEntry.name.ilike(pattern), GlossaryEntry.description.ilike(pattern)))
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=GlossaryEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(payload: GlossaryEntryCreate, db: Annotated[AsyncSession, Depends(get_db)]):
    entry = GlossaryEntry(**payload.model_dump())
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


@router.get("/pdf")
async def export_glossary_pdf(
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: CurrentIdentity,
    preview: bool = False,
):
    entries = (await db.execute(select(GlossaryEntry).order_by(GlossaryEntry.name))).scalars().all()
    if not entries:
        raise HTTPException(status_code=404, detail="No glossary entries to export")
    profile = await get_default_coach_profile(db)
    try:
        content = pdf_service.render_glossary_pdf(entries, profile)
    except DocumentRenderError:
        raise HTTPException(status_code=500, detail="Failed to generate PDF")

    disposition = "inline" if preview else "attachment"
    logger.info("Glossary exported as PDF by %s (%s entries)", identity.id, len(entries))
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="exercise-glossary.pdf"'},
    )


@router.get("/{entry_id}", response_model=GlossaryEntryResponse)
async def get_entry(entry_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await _get_entry_or_404(db, entry_id)


@router.put("/{entry_id}", response_model=GlossaryEntryResponse)
async def update_entry(
    entry_id: str,
    payload: GlossaryEntryUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    entry = await _get_entry_or_404(db, entry_id)
    changes = payload.model_dump(exclude_unset=True)
    for key in ("name", "images"):
        if changes.get(key) is None:
            changes.pop(key, None)
    for key, value in changes.items():
        setattr(entry, key, value)
    await db.commit()
    await db.refresh(entry)
    return entry


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(entry_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    entry = await _get_entry_or_404(db, entry_id)
    await db.delete(entry)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
