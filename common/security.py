# common/security.py
"""
Bearer-token claims shared by the services that do not own accounts.

Tokens are issued by the users service (or minted by a service for its
own service account) and signed with the shared ``SECRET_KEY``. The
claims used downstream are ``sub`` (username), ``role`` and ``user_id``.
"""
from typing import Any, Callable, Dict, Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import ALGORITHM, SECRET_KEY

bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)


def credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_claims(token: str) -> Dict[str, Any]:
    """
    Decode a JWT and return its user claims.

    Parameters
    ----------
    token : str
        Raw bearer token.

    Returns
    -------
    Dict[str, Any]
        ``username`` and ``role`` (always present) and ``user_id``
        (None when the token carries no id).

    Raises
    ------
    HTTPException
        401 if the token is invalid, expired, or lacks ``sub``/``role``.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_error()

    username = payload.get("sub")
    role = payload.get("role")
    if username is None or role is None:
        raise credentials_error()

    return {"username": username, "role": role, "user_id": payload.get("user_id")}


async def get_current_user_claims(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Dict[str, Any]:
    return decode_claims(credentials.credentials)


async def get_optional_user_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer_scheme),
) -> Optional[Dict[str, Any]]:
    """Claims of the caller when a bearer token is sent, otherwise None."""
    if credentials is None:
        return None
    return decode_claims(credentials.credentials)


def role_checker(allowed_roles: Iterable[str], claims_dependency: Callable = get_current_user_claims) -> Callable:
    """
    Build a dependency that returns the caller's claims if their role is
    one of ``allowed_roles`` and raises HTTP 403 otherwise.

    ``claims_dependency`` resolves the claims; services with stricter
    token rules pass their own.
    """
    allowed = set(allowed_roles)

    async def dependency(claims: Dict[str, Any] = Depends(claims_dependency)) -> Dict[str, Any]:
        if claims["role"] not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return claims

    return dependency


def require_roles(*allowed_roles: str) -> Callable:
    return role_checker(allowed_roles)
