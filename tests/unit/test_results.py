import pytest
from pydantic import ValidationError

from core.config import Settings
from core.errors import ApiError, AuthError, ErrorKind, unwrap
from core.result import Result


@pytest.mark.parametrize("error, status_code", [
    (AuthError.invalid_input("bad"), 400),
    (AuthError.unauthorized(), 401),
    (AuthError.not_found("missing"), 404),
    (AuthError.conflict("taken"), 409),
    (AuthError.internal(), 500),
])
def test_each_kind_maps_to_one_status(error, status_code):
    assert error.status_code == status_code


def test_unwrap_success_returns_value():
    assert unwrap(Result.success(42)) == 42


def test_unwrap_failure_raises_api_error():
    error = AuthError.conflict("Username or email already exists")

    with pytest.raises(ApiError) as exc_info:
        unwrap(Result.failure(error))

    assert exc_info.value.error is error
    assert exc_info.value.status_code == 409
    assert exc_info.value.error.kind is ErrorKind.CONFLICT


def test_failure_requires_error():
    with pytest.raises(ValueError):
        Result.failure(None)


def test_equal_signing_secrets_rejected():
    with pytest.raises(ValidationError):
        Settings(
            DATABASE_URL="sqlite://",
            ACCESS_TOKEN_SECRET="same-secret",
            REFRESH_TOKEN_SECRET="same-secret",
        )


def test_blank_signing_secret_rejected():
    with pytest.raises(ValidationError):
        Settings(
            DATABASE_URL="sqlite://",
            ACCESS_TOKEN_SECRET="  ",
            REFRESH_TOKEN_SECRET="refresh",
        )
