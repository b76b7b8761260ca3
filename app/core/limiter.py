from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.context import get_actor_id
from app.core.settings import settings


def actor_or_remote_address(request: Request) -> str:
    """Key per-route limits by the authenticated actor, falling back to the client address.

    Route decorators run after dependencies resolve the actor; the global
    middleware limit runs before that and so keys on the address.
    """
    actor_id = get_actor_id()
    if actor_id and actor_id != "-":
        return f"actor:{actor_id}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=actor_or_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_url or settings.redis_url,
    headers_enabled=False,
)

__all__ = ["actor_or_remote_address", "limiter"]
