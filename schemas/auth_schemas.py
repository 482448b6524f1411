import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

USER_NAME_PATTERN = re.compile(r'^[a-z0-9_.-]{3,64}$')


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _not_blank(value: str) -> str:
    if value is None or not value.strip():
        raise ValueError('must not be empty')
    return value


class RegisterUserRequest(CamelModel):
    full_name: str
    user_name: str
    email: EmailStr
    password: str

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value):
        return _not_blank(value).strip()

    @field_validator('user_name')
    @classmethod
    def validate_user_name(cls, value):
        """
        Usernames are case-insensitive: stored and compared in lowercase.
        Allowed characters: letters, digits, underscore, dot and dash.
        """
        value = _not_blank(value).strip().lower()
        if not USER_NAME_PATTERN.match(value):
            raise ValueError('Username must be 3-64 characters of letters, digits, "_", "." or "-"')
        return value

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return _not_blank(value)


class LoginRequest(CamelModel):
    user_name: Optional[str] = None
    email: Optional[str] = None
    password: str

    @field_validator('user_name', 'email')
    @classmethod
    def normalize_identifier(cls, value):
        if value is None:
            return None
        value = value.strip().lower()
        return value or None


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return _not_blank(value)
