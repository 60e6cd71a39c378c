# reviews_service/rate_limiter.py
from fastapi import Request

from common.rate_limit import SlidingWindowLimiter, client_ip

_review_limiter = SlidingWindowLimiter(
    max_requests=5, detail="Too many reviews in a short time, please slow down"
)


def review_rate_limiter(request: Request):
    """
    Rate limit review submissions per client IP.

    Reviews can be posted without an account, so the client address is
    the only stable key.
    """
    _review_limiter.hit(client_ip(request))
