import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTO_BACKUP_ENABLED"] = "false"

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from easyworkout.config import settings
from easyworkout.core.rate_limit import limiter
from easyworkout.database import Base, get_db
from easyworkout.main import app
from easyworkout.services.cloud_backup_service import AutoBackupScheduler, get_auto_backup_scheduler
from easyworkout.services.identity_service import MockIdentityProvider, get_identity_provider
from easyworkout.services.payment_service import MockPaymentProvider, get_payment_provider

PNG_PIXEL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def make_token(sub: str = "coach-1", email: str | None = "coach@example.com", **claims) -> str:
    payload = {
        "sub": sub,
        "email": email,
        "aud": settings.SUPABASE_JWT_AUDIENCE,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'planner.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity_provider() -> MockIdentityProvider:
    return MockIdentityProvider()


@pytest.fixture
def payment_provider() -> MockPaymentProvider:
    return MockPaymentProvider()


@pytest.fixture
async def scheduler() -> AsyncGenerator[AutoBackupScheduler, None]:
    scheduler = AutoBackupScheduler(delay_seconds=0.01, enabled=False)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture(scope="function")
async def client(session_factory, identity_provider, payment_provider, scheduler) -> AsyncGenerator[AsyncClient, None]:
    await limiter.reset()

    # one session per request, like the real dependency
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider
    app.dependency_overrides[get_auto_backup_scheduler] = lambda: scheduler
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    await limiter.reset()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def png_pixel() -> str:
    return PNG_PIXEL


@pytest.fixture
def token_for():
    def _headers(sub: str, email: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub=sub, email=email)}"}
    return _headers
