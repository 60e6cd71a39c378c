from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from common.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from common.security import credentials_error

from . import models
from .database import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# login is a form post, so Swagger's "Authorize" button works against it
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def authenticate_user(db: Session, username: str, password: str) -> Optional[models.Profile]:
    """
    Check a login attempt against the stored bcrypt hash.

    Returns the profile on success. Unknown usernames, deactivated
    accounts and wrong passwords all return None so the caller cannot
    tell them apart.
    """
    profile = db.query(models.Profile).filter(models.Profile.username == username).first()
    if profile is None or not profile.is_active:
        return None
    if not pwd_context.verify(password, profile.hashed_password):
        return None
    return profile


def issue_access_token(profile: models.Profile, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a bearer token for ``profile``.

    Parameters
    ----------
    profile : Profile
        Account the token is issued to.
    expires_delta : Optional[timedelta]
        Lifetime of the token, ``ACCESS_TOKEN_EXPIRE_MINUTES`` by default.

    Returns
    -------
    str
        JWT carrying ``sub`` (username), ``role``, ``user_id`` and ``exp``.
        The other services read these claims without touching this
        service's database.
    """
    lifetime = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": profile.username,
        "role": profile.role.value,
        "user_id": profile.id,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.Profile:
    """
    Load the signed-in profile for a bearer token.

    A token whose ``role`` claim no longer matches the stored role is
    refused, so promoting or demoting an account forces a fresh login.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_error()

    username = payload.get("sub")
    if username is None:
        raise credentials_error()

    profile = db.query(models.Profile).filter(models.Profile.username == username).first()
    if profile is None or not profile.is_active:
        raise credentials_error()

    token_role = payload.get("role")
    if token_role is not None and token_role != profile.role.value:
        raise credentials_error()

    return profile


def require_roles(allowed_roles: Iterable[models.UserRole]):
    """Dependency returning the current profile when its role is allowed, 403 otherwise."""
    allowed = set(allowed_roles)

    async def dependency(current_user: models.Profile = Depends(get_current_user)):
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted for this role",
            )
        return current_user

    return dependency
