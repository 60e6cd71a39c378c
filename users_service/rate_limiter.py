# users_service/rate_limiter.py
from fastapi import Request

from common.rate_limit import SlidingWindowLimiter, client_ip

# register and login share the limiter but count separately per path
_auth_limiter = SlidingWindowLimiter(
    max_requests=10, detail="Too many requests from this IP, please slow down"
)


def ip_rate_limiter(request: Request):
    _auth_limiter.hit(f"{client_ip(request)}:{request.url.path}")
