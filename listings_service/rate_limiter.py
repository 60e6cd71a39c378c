# listings_service/rate_limiter.py
from typing import Any, Dict

from fastapi import Depends

from common.rate_limit import SlidingWindowLimiter

from .auth import get_current_user_claims

_listing_limiter = SlidingWindowLimiter(
    max_requests=10, detail="Too many listing operations in a short time"
)


def listing_rate_limiter(claims: Dict[str, Any] = Depends(get_current_user_claims)):
    """Rate limit listing submissions, edits and uploads per account."""
    _listing_limiter.hit(claims["user_id"])
