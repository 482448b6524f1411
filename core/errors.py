"""
Error taxonomy shared by the service layer and the HTTP layer.

Services return failures as ``AuthError`` values inside a ``Result``.
Routers call ``unwrap`` which raises ``ApiError`` for the exception handler
registered in ``main.py`` to render.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, TypeVar

from starlette import status

from core.result import Result

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class AuthError:
    kind: ErrorKind
    message: str
    errors: List[Any] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @classmethod
    def invalid_input(cls, message: str, errors: List[Any] | None = None) -> "AuthError":
        return cls(ErrorKind.INVALID_INPUT, message, errors or [])

    @classmethod
    def conflict(cls, message: str) -> "AuthError":
        return cls(ErrorKind.CONFLICT, message)

    @classmethod
    def not_found(cls, message: str) -> "AuthError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized request") -> "AuthError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "AuthError":
        return cls(ErrorKind.INTERNAL, message)


class ApiError(Exception):
    """Raised at the HTTP seam to turn an ``AuthError`` into a response."""

    def __init__(self, error: AuthError):
        super().__init__(error.message)
        self.error = error

    @property
    def status_code(self) -> int:
        return self.error.status_code


def unwrap(result: Result[T, AuthError]) -> T:
    if not result.ok:
        raise ApiError(result.error)
    return result.value
