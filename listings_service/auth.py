from typing import Any, Callable, Dict

from fastapi import Depends

from common.security import credentials_error, get_current_user_claims as bearer_claims, role_checker


async def get_current_user_claims(claims: Dict[str, Any] = Depends(bearer_claims)) -> Dict[str, Any]:
    """
    Claims of the listing owner making the request.

    Listings are stored against the submitter's account, so a token
    without a ``user_id`` claim (a bare service token) is rejected with 401.
    """
    if claims["user_id"] is None:
        raise credentials_error()
    return claims


def require_roles(*allowed_roles: str) -> Callable:
    return role_checker(allowed_roles, claims_dependency=get_current_user_claims)
