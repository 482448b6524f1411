from middleware.rate_limiter import limiter
from core.config import settings


def test_rate_limiter_disabled_in_testing():
    """Verify rate limiter is disabled during tests."""

    assert settings.ENV == "testing"
    assert limiter.enabled is False


async def test_can_make_multiple_requests_in_tests(client, alice, login):
    """Verify rate limiting doesn't interfere with tests."""
    # Login is normally limited to 5/min
    for i in range(10):
        response = await login()
        assert response.status_code == 200


async def test_rate_limited_response_uses_error_envelope(client, alice, login):
    limiter.reset()
    limiter.enabled = True
    try:
        # Login allows 5/minute
        for i in range(5):
            response = await login()
            assert response.status_code == 200

        response = await login()
    finally:
        limiter.enabled = False
        limiter.reset()

    assert response.status_code == 429
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 429
    assert body["message"] == "Too many requests"
    assert body["errors"] == []
