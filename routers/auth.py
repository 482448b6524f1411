from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, File, Form, Request, Response, UploadFile
from starlette import status

from core.errors import unwrap
from middleware.rate_limiter import limiter
from schemas.auth_schemas import ChangePasswordRequest, LoginRequest, RefreshTokenRequest
from schemas.user_schemas import ApiResponse, AuthPayload, UserOut
from services.account_service import AccountService
from services.session_service import SessionService
from services.storage_service import save_upload_to_temp
from utils.cookies import clear_auth_cookies, set_auth_cookies
from utils.deps import (REFRESH_COOKIE, db_dependency, issuer_dependency,
                        storage_dependency, user_dependency)
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/api/v1/users",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
def register_user(
    request: Request,
    db: db_dependency,
    storage: storage_dependency,
    full_name: Annotated[Optional[str], Form(alias="fullName")] = None,
    user_name: Annotated[Optional[str], Form(alias="userName")] = None,
    email: Annotated[Optional[str], Form()] = None,
    password: Annotated[Optional[str], Form()] = None,
    avatar: Annotated[Optional[UploadFile], File()] = None,
    cover_image: Annotated[Optional[UploadFile], File(alias="coverImage")] = None,
):
    """
    Registers a user. Multipart form: fullName, userName, email, password,
    avatar (required file) and coverImage (optional file).
    """
    avatar_path = save_upload_to_temp(avatar)
    cover_image_path = save_upload_to_temp(cover_image)

    user = unwrap(AccountService.register(
        db, storage,
        full_name=full_name,
        user_name=user_name,
        email=email,
        password=password,
        avatar_path=avatar_path,
        cover_image_path=cover_image_path,
    ))

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "user_name": user.user_name}
    )

    return ApiResponse.build(201, UserOut.model_validate(user), "User registered successfully")


@router.post("/login", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def login_user(request: Request, response: Response, body: LoginRequest,
               db: db_dependency, issuer: issuer_dependency):
    outcome = unwrap(SessionService.login(
        db, issuer,
        password=body.password,
        user_name=body.user_name,
        email=body.email,
    ))

    set_auth_cookies(response, outcome.tokens)

    logger.info(
        "User logged in successfully",
        extra={"user_id": outcome.user.id}
    )

    payload = AuthPayload(
        user=UserOut.model_validate(outcome.user),
        access_token=outcome.tokens.access_token,
        refresh_token=outcome.tokens.refresh_token,
    )
    return ApiResponse.build(200, payload, "User logged in successfully")


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def logout_user(request: Request, response: Response, user: user_dependency, db: db_dependency):
    """
    Closes the user's session. Safe to call repeatedly.
    """
    unwrap(SessionService.logout(db, user.get("user_id")))

    clear_auth_cookies(response)

    logger.info("User logged out", extra={"user_id": user.get("user_id")})

    return ApiResponse.build(200, {}, "User logged out")


@router.post("/refresh-token", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def refresh_access_token(
    request: Request,
    response: Response,
    db: db_dependency,
    issuer: issuer_dependency,
    body: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Annotated[Optional[str], Cookie(alias=REFRESH_COOKIE)] = None,
):
    """
    Rotates the token pair. The refresh token is read from the cookie first,
    then from the ``refreshToken`` body field.
    """
    presented = refresh_cookie or (body.refresh_token if body else None)

    tokens = unwrap(SessionService.refresh(db, issuer, presented))

    set_auth_cookies(response, tokens)

    logger.info("Access token refreshed")

    payload = AuthPayload(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    return ApiResponse.build(200, payload, "Access token refreshed")


@router.post("/change-password", status_code=status.HTTP_200_OK)
@limiter.limit("2/minute")
def change_password(request: Request, response: Response, body: ChangePasswordRequest,
                    user: user_dependency, db: db_dependency):
    """
    Changes the password and logs the account out everywhere.
    """
    unwrap(SessionService.change_password(
        db, user.get("user_id"), body.old_password, body.new_password
    ))

    clear_auth_cookies(response)

    return ApiResponse.build(200, {}, "Password changed successfully. Please log in again.")
