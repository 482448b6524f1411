from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from services.token_service import TokenKind

def get_user_id(request: Request):
    """Rate-limit key: the authenticated user id, else the client address."""
    token = request.cookies.get("accessToken")
    header = request.headers.get("Authorization")
    if not token and header and header.startswith("Bearer "):
        token = header[len("Bearer "):]

    issuer = getattr(request.app.state, "token_issuer", None)
    if token and issuer is not None:
        verified = issuer.verify(token, TokenKind.ACCESS)
        if verified.ok:
            return verified.value.user_id

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
