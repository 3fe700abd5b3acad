from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from services.token_service import TokenService


def get_rate_limit_key(request: Request):
    """
    Signed-in customers are limited per identity, everyone else per address.
    An unusable token falls back to the address, it never fails the request.
    """
    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        identity = TokenService.decode_identity(authorization.replace("Bearer ", "", 1))
        if identity:
            return f"user:{identity.id}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
