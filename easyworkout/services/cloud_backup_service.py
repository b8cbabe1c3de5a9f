import asyncio
import json
import logging
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Iterator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from easyworkout.config import settings
from easyworkout.core.exceptions import BackupFormatError
from easyworkout.database import AsyncSessionLocal
from easyworkout.models import CloudBackup
from easyworkout.services import backup_service
from easyworkout.services.identity_service import BackupNotFoundError, IdentityProvider, get_identity_provider

logger = logging.getLogger(__name__)

BackupJob = Callable[[], Awaitable[None]]


def backup_path(identity_id: str) -> str:
    return f"{identity_id}/data.json"


class AutoBackupScheduler:
    """Debounced background backups, one pending task per identity.

    Scheduling again for the same identity cancels the pending task and
    restarts the delay, so a burst of edits produces a single upload.
    """

    def __init__(self, delay_seconds: float, enabled: bool = True) -> None:
        self.delay_seconds = delay_seconds
        self.enabled = enabled
        self._pending: dict[str, asyncio.Task] = {}
        self._pauses: Counter[Optional[str]] = Counter()

    def is_paused(self, key: str) -> bool:
        return self._pauses[None] > 0 or self._pauses[key] > 0

    def is_pending(self, key: str) -> bool:
        task = self._pending.get(key)
        return task is not None and not task.done()

    def schedule(self, key: str, job: BackupJob) -> bool:
        if not self.enabled or self.is_paused(key):
            return False
        previous = self._pending.pop(key, None)
        if previous and not previous.done():
            previous.cancel()
        self._pending[key] = asyncio.create_task(self._run_later(key, job))
        return True

    async def _run_later(self, key: str, job: BackupJob) -> None:
        try:
            await asyncio.sleep(self.delay_seconds)
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Auto backup for %s failed", key)
        finally:
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]

    @contextmanager
    def paused(self, key: Optional[str] = None) -> Iterator[None]:
        """Suppress scheduling for one identity, or for everyone when no key is given."""
        self._pauses[key] += 1
        try:
            yield
        finally:
            self._pauses[key] -= 1
            if not self._pauses[key]:
                del self._pauses[key]

    async def shutdown(self) -> None:
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


auto_backup = AutoBackupScheduler(
    delay_seconds=settings.AUTO_BACKUP_DELAY_SECONDS,
    enabled=settings.AUTO_BACKUP_ENABLED,
)


def get_auto_backup_scheduler() -> AutoBackupScheduler:
    return auto_backup


AutoBackup = Annotated[AutoBackupScheduler, Depends(get_auto_backup_scheduler)]


async def export_to_cloud(db: AsyncSession, provider: IdentityProvider, identity_id: str) -> CloudBackup:
    path = backup_path(identity_id)
    document = await backup_service.export_document(db)
    payload = json.dumps(document, indent=2).encode("utf-8")
    await provider.upload_backup(path, payload)

    record = await db.get(CloudBackup, identity_id)
    now = datetime.now(timezone.utc)
    if record is None:
        record = CloudBackup(identity_id=identity_id, path=path, last_backup_at=now)
        db.add(record)
    else:
        record.path = path
        record.last_backup_at = now
    await db.commit()
    logger.info("Cloud backup written to %s (%s bytes)", path, len(payload))
    return record


async def _download_document(provider: IdentityProvider, identity_id: str) -> Any:
    raw = await provider.download_backup(backup_path(identity_id))
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BackupFormatError("cloud backup is not valid JSON") from exc


async def restore_from_cloud(
    db: AsyncSession,
    provider: IdentityProvider,
    identity_id: str,
    scheduler: AutoBackupScheduler,
) -> dict[str, int]:
    document = await _download_document(provider, identity_id)
    with scheduler.paused(identity_id):
        return await backup_service.merge_document(db, document)


async def initial_sync(
    db: AsyncSession,
    provider: IdentityProvider,
    identity_id: str,
    scheduler: AutoBackupScheduler,
) -> dict[str, Any]:
    """Pull the cloud backup only when nothing is stored locally yet."""
    if not await backup_service.is_store_empty(db):
        return {"status": "skipped", "reason": "local data present"}
    try:
        document = await _download_document(provider, identity_id)
    except BackupNotFoundError:
        return {"status": "skipped", "reason": "no cloud backup"}
    with scheduler.paused(identity_id):
        summary = await backup_service.merge_document(db, document)
    return {"status": "imported", **summary}


async def run_scheduled_backup(identity_id: str) -> None:
    async with AsyncSessionLocal() as db:
        await export_to_cloud(db, get_identity_provider(), identity_id)


def schedule_auto_backup(scheduler: AutoBackupScheduler, identity_id: str | None) -> bool:
    if not identity_id:
        return False
    return scheduler.schedule(identity_id, lambda: run_scheduled_backup(identity_id))
