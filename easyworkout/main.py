import logging
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from easyworkout.config import settings
from easyworkout.core import exceptions
from easyworkout.database import AsyncSessionLocal
from easyworkout.routers.account import router as account_router
from easyworkout.routers.backup import router as backup_router
from easyworkout.routers.clients import router as clients_router
from easyworkout.routers.coach_profile import router as coach_profile_router
from easyworkout.routers.glossary import router as glossary_router
from easyworkout.routers.payments import router as payments_router
from easyworkout.routers.workouts import router as workouts_router
from easyworkout.services.cloud_backup_service import auto_backup

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json"
)

# CORS must be added before other middleware
configured_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
default_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5000",
    "http://127.0.0.1:5000",
]
allow_origins = configured_origins if settings.APP_ENV == "production" else list(dict.fromkeys([*default_origins, *configured_origins]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# Exception Handlers
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)  # type: ignore
app.add_exception_handler(StarletteHTTPException, exceptions.http_exception_handler)  # type: ignore
app.add_exception_handler(IntegrityError, exceptions.integrity_exception_handler)  # type: ignore
app.add_exception_handler(SQLAlchemyError, exceptions.storage_exception_handler)  # type: ignore
app.add_exception_handler(exceptions.ProviderError, exceptions.provider_exception_handler)  # type: ignore
app.add_exception_handler(exceptions.BackupFormatError, exceptions.backup_format_exception_handler)  # type: ignore

# Routers
app.include_router(workouts_router, prefix=f"{settings.API_PREFIX}/workouts", tags=["Workouts"])
app.include_router(clients_router, prefix=f"{settings.API_PREFIX}/clients", tags=["Clients"])
app.include_router(coach_profile_router, prefix=f"{settings.API_PREFIX}/coach-profile", tags=["CoachProfile"])
app.include_router(glossary_router, prefix=f"{settings.API_PREFIX}/glossary", tags=["Glossary"])
app.include_router(backup_router, prefix=f"{settings.API_PREFIX}/backup", tags=["Backup"])
app.include_router(account_router, prefix=f"{settings.API_PREFIX}/account", tags=["Account"])
app.include_router(payments_router, prefix=settings.API_PREFIX, tags=["Payments"])

@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database unavailable",
        ) from exc
    return {"status": "ok", "database": "ok"}


@app.on_event("startup")
async def startup_checks() -> None:
    _validate_security_settings()
    if settings.AUTO_BACKUP_ENABLED:
        logger.info("Auto backup enabled (delay=%ss)", settings.AUTO_BACKUP_DELAY_SECONDS)
    else:
        logger.info("Auto backup disabled by config")


@app.on_event("shutdown")
async def shutdown_auto_backup() -> None:
    await auto_backup.shutdown()


def _validate_security_settings() -> None:
    if settings.APP_ENV != "production":
        return

    errors: list[str] = []
    if len(settings.SUPABASE_JWT_SECRET.strip()) < 24 or settings.SUPABASE_JWT_SECRET.startswith("dev-only"):
        errors.append("SUPABASE_JWT_SECRET must be set to the project's JWT secret in production.")
    if not settings.BACKEND_CORS_ORIGINS:
        errors.append("BACKEND_CORS_ORIGINS must be explicitly configured in production.")
    if settings.PAYMENT_PROVIDER.lower() == "stripe" and not settings.STRIPE_SECRET_KEY:
        errors.append("STRIPE_SECRET_KEY must be set when PAYMENT_PROVIDER is stripe.")

    if errors:
        raise RuntimeError("; ".join(errors))
