from core.database import SessionLocal
from core.errors import ApiError, AuthError
from typing import Annotated, Optional
from fastapi import Cookie, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from services.storage_service import CloudinaryStorage
from services.token_service import TokenIssuer, TokenKind
from utils.logger import get_logger

logger = get_logger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

bearer_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/users/login", auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer

issuer_dependency = Annotated[TokenIssuer, Depends(get_token_issuer)]


def get_object_storage(request: Request) -> CloudinaryStorage:
    return request.app.state.object_storage

storage_dependency = Annotated[CloudinaryStorage, Depends(get_object_storage)]


def _access_token(cookie_token: Optional[str], bearer_token: Optional[str]) -> Optional[str]:
    # The cookie wins, same as for refresh tokens
    return cookie_token or bearer_token


def get_current_user(
    issuer: issuer_dependency,
    bearer_token: Annotated[Optional[str], Depends(bearer_scheme)],
    access_cookie: Annotated[Optional[str], Cookie(alias=ACCESS_COOKIE)] = None,
):
    """
    Stateless check of the access token from the cookie or bearer header.
    Access tokens are never looked up in the database.
    """
    token = _access_token(access_cookie, bearer_token)
    if not token:
        raise ApiError(AuthError.unauthorized("Unauthorized request"))

    verified = issuer.verify(token, TokenKind.ACCESS)
    if not verified.ok:
        logger.debug("Access token rejected", extra={"reason": verified.error.value})
        raise ApiError(AuthError.unauthorized("Invalid or expired session"))

    return {"user_id": verified.value.user_id}

user_dependency = Annotated[dict, Depends(get_current_user)]


def get_optional_user(
    issuer: issuer_dependency,
    bearer_token: Annotated[Optional[str], Depends(bearer_scheme)],
    access_cookie: Annotated[Optional[str], Cookie(alias=ACCESS_COOKIE)] = None,
):
    """Like get_current_user, but anonymous callers get None instead of 401."""
    token = _access_token(access_cookie, bearer_token)
    if not token:
        return None

    verified = issuer.verify(token, TokenKind.ACCESS)
    if not verified.ok:
        return None

    return {"user_id": verified.value.user_id}

optional_user_dependency = Annotated[Optional[dict], Depends(get_optional_user)]
