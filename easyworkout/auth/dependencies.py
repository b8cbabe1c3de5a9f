from dataclasses import dataclass
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from easyworkout.config import settings

# Tokens are issued by the identity provider; the URL only feeds the OpenAPI docs.
bearer_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/account/token", auto_error=False)


@dataclass(frozen=True)
class Identity:
    id: str
    email: str | None = None


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_identity(token: str) -> Identity:
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        raise _credentials_exception()
    subject = payload.get("sub")
    if not subject:
        raise _credentials_exception()
    return Identity(id=str(subject), email=payload.get("email"))


async def get_optional_identity(
    token: Annotated[str | None, Depends(bearer_scheme)],
) -> Identity | None:
    if not token:
        return None
    return decode_identity(token)


async def get_current_identity(
    identity: Annotated[Identity | None, Depends(get_optional_identity)],
) -> Identity:
    if identity is None:
        raise _credentials_exception()
    return identity


OptionalIdentity = Annotated[Identity | None, Depends(get_optional_identity)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
