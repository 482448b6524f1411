from fastapi import Response

from core.config import settings
from services.token_service import TokenPair
from utils.deps import ACCESS_COOKIE, REFRESH_COOKIE


def set_auth_cookies(response: Response, tokens: TokenPair):
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}
    response.set_cookie(ACCESS_COOKIE, tokens.access_token, **options)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token, **options)


def clear_auth_cookies(response: Response):
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
