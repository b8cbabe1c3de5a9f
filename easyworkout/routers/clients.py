import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.auth.dependencies import OptionalIdentity
from easyworkout.database import get_db
from easyworkout.editor import new_id
from easyworkout.models import Client, Workout
from easyworkout.schemas import ClientCreate, ClientResponse, ClientUpdate, WorkoutResponse
from easyworkout.services.cloud_backup_service import AutoBackup, schedule_auto_backup

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_client_or_404(db: AsyncSession, client_id: str) -> Client:
    client = await db.get(Client, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("", response_model=List[ClientResponse])
async def list_clients(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: Optional[str] = None,
):
    stmt = select(Client).order_by(Client.name)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(
            or_(Client.name.ilike(pattern), Client.email.ilike(pattern), Client.phone.ilike(pattern))
        )
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    client = Client(id=payload.id or new_id(), **payload.model_dump(exclude={"id"}))
    db.add(client)
    await db.commit()
    await db.refresh(client)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return client


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await _get_client_or_404(db, client_id)


@router.get("/{client_id}/workouts", response_model=List[WorkoutResponse])
async def list_client_workouts(client_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    client = await _get_client_or_404(db, client_id)
    # programs reference clients by name only
    result = await db.execute(
        select(Workout).where(Workout.client_name == client.name).order_by(Workout.updated_at.desc())
    )
    return result.scalars().all()


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    payload: ClientUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    client = await _get_client_or_404(db, client_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    for key, value in changes.items():
        setattr(client, key, value)
    await db.commit()
    await db.refresh(client)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return client


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: OptionalIdentity,
    scheduler: AutoBackup,
):
    client = await _get_client_or_404(db, client_id)
    await db.delete(client)
    await db.commit()
    logger.info("Client %s deleted", client_id)
    schedule_auto_backup(scheduler, identity.id if identity else None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
