import logging
from dataclasses import dataclass, field
from typing import Any

from supabase import acreate_client

from easyworkout.config import settings
from easyworkout.core.exceptions import ProviderError
from easyworkout.editor.tree import new_id

logger = logging.getLogger(__name__)


class BackupNotFoundError(ProviderError):
    pass


class IdentityProvider:
    """Auth and storage calls delegated to the identity provider."""

    async def send_password_reset(self, email: str, redirect_to: str | None) -> None:
        raise NotImplementedError

    async def update_profile(self, identity_id: str, name: str) -> None:
        raise NotImplementedError

    async def update_password(self, identity_id: str, password: str) -> None:
        raise NotImplementedError

    async def create_user(self, email: str, metadata: dict[str, Any]) -> str:
        raise NotImplementedError

    async def upload_backup(self, path: str, content: bytes) -> None:
        raise NotImplementedError

    async def download_backup(self, path: str) -> bytes:
        raise NotImplementedError


@dataclass
class MockIdentityProvider(IdentityProvider):
    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    blobs: dict[str, bytes] = field(default_factory=dict)
    reset_emails: list[str] = field(default_factory=list)
    fail_with: str | None = None

    def _check(self) -> None:
        if self.fail_with:
            raise ProviderError(self.fail_with)

    async def send_password_reset(self, email: str, redirect_to: str | None) -> None:
        self._check()
        self.reset_emails.append(email)

    async def update_profile(self, identity_id: str, name: str) -> None:
        self._check()
        self.users.setdefault(identity_id, {}).setdefault("user_metadata", {})["name"] = name

    async def update_password(self, identity_id: str, password: str) -> None:
        self._check()
        self.users.setdefault(identity_id, {})["password_changed"] = True

    async def create_user(self, email: str, metadata: dict[str, Any]) -> str:
        self._check()
        user_id = new_id()
        self.users[user_id] = {"email": email, "email_confirm": True, "user_metadata": dict(metadata)}
        return user_id

    async def upload_backup(self, path: str, content: bytes) -> None:
        self._check()
        self.blobs[path] = content

    async def download_backup(self, path: str) -> bytes:
        self._check()
        if path not in self.blobs:
            raise BackupNotFoundError("No cloud backup found")
        return self.blobs[path]


def _looks_missing(exc: Exception) -> bool:
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    return str(status) == "404" or "not found" in str(exc).lower()


class SupabaseIdentityProvider(IdentityProvider):
    def __init__(self) -> None:
        self._client = None

    async def _get_client(self):
        if self._client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
                raise ProviderError("Missing Supabase configuration")
            self._client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return self._client

    async def send_password_reset(self, email: str, redirect_to: str | None) -> None:
        client = await self._get_client()
        options = {"redirect_to": redirect_to} if redirect_to else {}
        try:
            await client.auth.reset_password_for_email(email, options)
        except Exception as exc:
            logger.exception("Password reset request failed")
            raise ProviderError(str(exc) or "Password reset failed") from exc

    async def update_profile(self, identity_id: str, name: str) -> None:
        client = await self._get_client()
        try:
            await client.auth.admin.update_user_by_id(identity_id, {"user_metadata": {"name": name}})
        except Exception as exc:
            logger.exception("Profile update failed for %s", identity_id)
            raise ProviderError(str(exc) or "Profile update failed") from exc

    async def update_password(self, identity_id: str, password: str) -> None:
        client = await self._get_client()
        try:
            await client.auth.admin.update_user_by_id(identity_id, {"password": password})
        except Exception as exc:
            logger.exception("Password update failed for %s", identity_id)
            raise ProviderError(str(exc) or "Password update failed") from exc

    async def create_user(self, email: str, metadata: dict[str, Any]) -> str:
        client = await self._get_client()
        try:
            response = await client.auth.admin.create_user(
                {"email": email, "email_confirm": True, "user_metadata": metadata}
            )
        except Exception as exc:
            logger.exception("User creation failed for %s", email)
            raise ProviderError(str(exc) or "Failed to create user account") from exc
        return str(response.user.id)

    async def upload_backup(self, path: str, content: bytes) -> None:
        client = await self._get_client()
        try:
            await client.storage.from_(settings.BACKUP_BUCKET).upload(
                path,
                content,
                {"content-type": "application/json", "upsert": "true"},
            )
        except Exception as exc:
            logger.exception("Cloud backup upload failed for %s", path)
            raise ProviderError(str(exc) or "Cloud backup upload failed") from exc

    async def download_backup(self, path: str) -> bytes:
        client = await self._get_client()
        try:
            return await client.storage.from_(settings.BACKUP_BUCKET).download(path)
        except Exception as exc:
            if _looks_missing(exc):
                raise BackupNotFoundError("No cloud backup found") from exc
            logger.exception("Cloud backup download failed for %s", path)
            raise ProviderError(str(exc) or "Cloud backup download failed") from exc


_provider: IdentityProvider | None = None


def get_identity_provider() -> IdentityProvider:
    global _provider
    if _provider is None:
        if settings.IDENTITY_PROVIDER.lower() == "supabase":
            _provider = SupabaseIdentityProvider()
        else:
            _provider = MockIdentityProvider()
    return _provider
