from fastapi import Request
from slowapi import Limiter

from portal_guard.core.settings import get_settings


def client_ip(request: Request) -> str:
    if get_settings().trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return client.host if client and client.host else "0.0.0.0"


_settings = get_settings()

limiter = Limiter(
    key_func=client_ip,
    default_limits=[_settings.rate_limit_api],
    enabled=_settings.rate_limits_enabled,
)
