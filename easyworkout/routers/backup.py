import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.auth.dependencies import CurrentIdentity, OptionalIdentity
from easyworkout.database import get_db
from easyworkout.services import backup_service, cloud_backup_service
from easyworkout.services.cloud_backup_service import AutoBackup
from easyworkout.services.identity_service import BackupNotFoundError, IdentityProvider, get_identity_provider

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/export")
async def export_backup(db: Annotated[AsyncSession, Depends(get_db)]):
    document = await backup_service.export_document(db)
    filename = backup_service.backup_filename()
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_backup(
    document: Annotated[Any, Body()],
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    # anonymous imports hold every identity's auto backup
    with scheduler.paused(identity.id if identity else None):
        summary = await backup_service.import_document(db, document)
    return {"message": "Backup imported", "imported": summary}


@router.get("/stats")
async def backup_stats(db: Annotated[AsyncSession, Depends(get_db)], identity: OptionalIdentity):
    return await backup_service.backup_stats(db, identity.id if identity else None)


@router.post("/cloud/export")
async def export_to_cloud(
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: CurrentIdentity,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
):
    record = await cloud_backup_service.export_to_cloud(db, provider, identity.id)
    return {
        "message": "Backup uploaded",
        "path": record.path,
        "lastBackup": backup_service.as_utc(record.last_backup_at).isoformat(),
    }


@router.post("/cloud/restore")
async def restore_from_cloud(
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: CurrentIdentity,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    scheduler: AutoBackup,
):
    try:
        summary = await cloud_backup_service.restore_from_cloud(db, provider, identity.id, scheduler)
    except BackupNotFoundError:
        raise HTTPException(status_code=404, detail="No cloud backup found")
    logger.info("Cloud backup restored for %s: %s", identity.id, summary)
    return {"message": "Backup restored", "merged": summary}


@router.post("/cloud/sync")
async def sync_from_cloud(
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: CurrentIdentity,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    scheduler: AutoBackup,
):
    return await cloud_backup_service.initial_sync(db, provider, identity.id, scheduler)
