import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import EmailStr, Field

from easyworkout.auth.dependencies import CurrentIdentity
from easyworkout.config import settings
from easyworkout.core.rate_limit import RateLimitRule, rate_limited
from easyworkout.schemas import ApiModel
from easyworkout.services.identity_service import IdentityProvider, get_identity_provider

logger = logging.getLogger(__name__)

router = APIRouter()

PASSWORD_RESET_RULE = RateLimitRule(
    scope="password-reset",
    limit=settings.PASSWORD_RESET_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)


class PasswordResetRequest(ApiModel):
    email: EmailStr


class ProfileUpdateRequest(ApiModel):
    name: str = Field(min_length=1)


class PasswordUpdateRequest(ApiModel):
    password: str = Field(min_length=6)


@router.post("/password-reset", dependencies=[rate_limited(PASSWORD_RESET_RULE, per_field="email")])
async def request_password_reset(
    payload: PasswordResetRequest,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
):
    await provider.send_password_reset(payload.email, settings.PASSWORD_RESET_REDIRECT_URL)
    logger.info("Password reset requested")
    return {"message": "If an account exists for this email, a reset link has been sent."}


@router.get("/me")
async def read_me(identity: CurrentIdentity):
    return {"id": identity.id, "email": identity.email}


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    identity: CurrentIdentity,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
):
    await provider.update_profile(identity.id, payload.name.strip())
    return {"message": "Profile updated", "name": payload.name.strip()}


@router.put("/password")
async def update_password(
    payload: PasswordUpdateRequest,
    identity: CurrentIdentity,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
):
    await provider.update_password(identity.id, payload.password)
    logger.info("Password changed for %s", identity.id)
    return {"message": "Password updated"}
