from datetime import timedelta
from services.token_service import TokenKind

REFRESH_URL = "/api/v1/users/refresh-token"


async def test_refresh_token_success(client, alice, login, issuer):
    """Test successful token refresh with valid refresh token."""
    old_tokens = (await login()).json()["data"]

    response = await client.post(REFRESH_URL, json={
        "refreshToken": old_tokens["refreshToken"]
    })

    assert response.status_code == 200
    new_tokens = response.json()["data"]

    assert new_tokens["refreshToken"] != old_tokens["refreshToken"]
    assert issuer.verify(new_tokens["accessToken"], TokenKind.ACCESS).value.user_id == alice.id

    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("accessToken=") for c in cookies)
    assert any(c.startswith("refreshToken=") for c in cookies)


async def test_refresh_from_cookie(client, alice, login):
    refresh_token = (await login()).json()["data"]["refreshToken"]

    response = await client.post(REFRESH_URL, headers={
        "Cookie": f"refreshToken={refresh_token}"
    })

    assert response.status_code == 200


async def test_refresh_token_rotation(client, alice, login):
    """A refresh token works exactly once."""
    old_refresh_token = (await login()).json()["data"]["refreshToken"]

    response = await client.post(REFRESH_URL, json={"refreshToken": old_refresh_token})
    assert response.status_code == 200

    response = await client.post(REFRESH_URL, json={"refreshToken": old_refresh_token})

    assert response.status_code == 401
    assert "expired or used" in response.json()["message"].lower()


async def test_stolen_token_after_legit_refresh(client, alice, login):
    """An attacker replaying the pre-rotation token is rejected; the owner is not."""
    stolen = (await login()).json()["data"]["refreshToken"]

    legit = await client.post(REFRESH_URL, json={"refreshToken": stolen})
    assert legit.status_code == 200
    current = legit.json()["data"]["refreshToken"]

    replay = await client.post(REFRESH_URL, json={"refreshToken": stolen})
    assert replay.status_code == 401

    response = await client.post(REFRESH_URL, json={"refreshToken": current})
    assert response.status_code == 200


async def test_refresh_expired_token(client, alice, issuer):
    expired, _ = issuer.issue_refresh_token(alice.id, "session-id", expires_delta=timedelta(seconds=-5))

    response = await client.post(REFRESH_URL, json={"refreshToken": expired})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired session"


async def test_refresh_invalid_token_format(client):
    response = await client.post(REFRESH_URL, json={"refreshToken": "invalid_token_format"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired session"


async def test_refresh_with_access_token(client, alice, login):
    """An access token cannot be used as a refresh token."""
    access_token = (await login()).json()["data"]["accessToken"]

    response = await client.post(REFRESH_URL, json={"refreshToken": access_token})

    assert response.status_code == 401


async def test_refresh_missing_token(client):
    response = await client.post(REFRESH_URL, json={})
    assert response.status_code == 401

    response = await client.post(REFRESH_URL)
    assert response.status_code == 401
