# mailslot/api/limits.py

from typing import Optional

from fastapi import Header, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from mailslot.config import ACCESS_KEY
from mailslot.core.security import verify_access_key
from mailslot.errors import AccessDeniedError


def client_origin(request: Request) -> str:
    """
    Caller IP used as the origin identifier.
    Cloudflare's CF-Connecting-IP first, then the first X-Forwarded-For hop,
    then the socket peer.
    """
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return get_remote_address(request) or "unknown"


# Plain request throttling on public routes; the per-origin submission
# cool-down lives in core/rate_limiter.py
limiter = Limiter(key_func=client_origin)


def require_access_key(
    key: Optional[str] = Query(default=None),
    x_access_key: Optional[str] = Header(default=None),
) -> None:
    """FastAPI dependency guarding keyed routes (?key=... or X-Access-Key)."""
    if not verify_access_key(ACCESS_KEY, x_access_key or key):
        raise AccessDeniedError()
