from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.auth_schemas import CamelModel

T = TypeVar("T")


class UserOut(BaseModel):
    """Sanitized user: no password hash, no session secrets."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_name: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthPayload(CamelModel):
    user: Optional[UserOut] = None
    access_token: str
    refresh_token: str


class ChannelProfile(CamelModel):
    id: str
    user_name: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str = ""
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class UpdateAccountRequest(CamelModel):
    full_name: str

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value):
        if not value or not value.strip():
            raise ValueError('must not be empty')
        return value.strip()


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by every successful response."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    data: Optional[T] = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def build(cls, status_code: int, data: Any = None, message: str = "Success") -> dict:
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True, mode="json")
        return cls(
            status_code=status_code,
            data=data,
            message=message,
            success=status_code < 400
        ).model_dump(by_alias=True, mode="json")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    message: str
    success: bool = False
    errors: List[Any] = Field(default_factory=list)
