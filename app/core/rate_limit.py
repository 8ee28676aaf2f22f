"""Per-client limits for checkout and the public coupon lookup (SlowAPI)."""
from fastapi import Request
from slowapi import Limiter

from app.core.config import settings


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client and request.client.host else "127.0.0.1"


def per_minute(count: int) -> str:
    return f"{max(int(count), 1)}/minute"


ORDER_CREATE_LIMIT = per_minute(settings.rate_limit_orders_per_minute)
COUPON_LOOKUP_LIMIT = per_minute(settings.rate_limit_per_minute)

limiter = Limiter(key_func=client_key)
