from typing import Annotated, Optional

from fastapi import APIRouter, File, Request, UploadFile, status

from core.errors import unwrap
from middleware.rate_limiter import limiter
from schemas.user_schemas import ApiResponse, UpdateAccountRequest, UserOut
from services.account_service import AccountService
from services.storage_service import save_upload_to_temp
from utils.deps import db_dependency, optional_user_dependency, storage_dependency, user_dependency
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"]
)


@router.get("/current-user", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def get_current_user(request: Request, user: user_dependency, db: db_dependency):
    model = unwrap(AccountService.get_current_user(db, user.get("user_id")))

    return ApiResponse.build(200, UserOut.model_validate(model), "Current user fetched successfully")


@router.patch("/update-account", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def update_account_details(request: Request, body: UpdateAccountRequest,
                                 user: user_dependency, db: db_dependency):
    model = unwrap(AccountService.update_account_details(db, user.get("user_id"), body.full_name))

    logger.info("Account details updated", extra={"user_id": model.id})

    return ApiResponse.build(200, UserOut.model_validate(model), "Account details updated successfully")


@router.patch("/avatar", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def update_avatar(request: Request, user: user_dependency, db: db_dependency,
                  storage: storage_dependency,
                  avatar: Annotated[Optional[UploadFile], File()] = None):
    model = unwrap(AccountService.update_avatar(
        db, storage, user.get("user_id"), save_upload_to_temp(avatar)
    ))

    return ApiResponse.build(200, UserOut.model_validate(model), "Avatar image updated successfully")


@router.patch("/cover-image", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def update_cover_image(request: Request, user: user_dependency, db: db_dependency,
                       storage: storage_dependency,
                       cover_image: Annotated[Optional[UploadFile], File(alias="coverImage")] = None):
    model = unwrap(AccountService.update_cover_image(
        db, storage, user.get("user_id"), save_upload_to_temp(cover_image)
    ))

    return ApiResponse.build(200, UserOut.model_validate(model), "Cover image updated successfully")


@router.get("/c/{user_name}", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def get_channel_profile(request: Request, user_name: str,
                              viewer: optional_user_dependency, db: db_dependency):
    """
    Channel view with subscriber counts. Anonymous viewers are allowed;
    ``isSubscribed`` is then always false.
    """
    viewer_id = viewer.get("user_id") if viewer else None
    profile = unwrap(AccountService.get_channel_profile(db, user_name, viewer_id))

    return ApiResponse.build(200, profile, "User channel fetched successfully")


@router.post("/c/{user_name}/subscription", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def subscribe(request: Request, user_name: str, user: user_dependency, db: db_dependency):
    profile = unwrap(AccountService.subscribe(db, user.get("user_id"), user_name))

    return ApiResponse.build(200, profile, "Subscribed successfully")


@router.delete("/c/{user_name}/subscription", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def unsubscribe(request: Request, user_name: str, user: user_dependency, db: db_dependency):
    profile = unwrap(AccountService.unsubscribe(db, user.get("user_id"), user_name))

    return ApiResponse.build(200, profile, "Unsubscribed successfully")
