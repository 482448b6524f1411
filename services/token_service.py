import secrets
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError
from jose.exceptions import JWTClaimsError

from core.config import Settings
from core.result import Result


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenFailure(str, Enum):
    """Why a token was rejected. Only ever logged, never sent to clients."""
    EXPIRED = "expired_token"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    kind: TokenKind
    jti: str
    issued_at: datetime
    session_id: Optional[str] = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


class TokenIssuer:
    """
    Mints and verifies signed JWTs.

    Each kind has its own secret and lifetime, so a leaked access secret
    cannot be used to forge refresh tokens (and vice versa). Every token
    carries a random ``jti``, which keeps two tokens minted for the same user
    in the same second distinct.
    """

    def __init__(self, config: Settings):
        self._algorithm = config.ALGORITHM
        self._secrets = {
            TokenKind.ACCESS: config.ACCESS_TOKEN_SECRET,
            TokenKind.REFRESH: config.REFRESH_TOKEN_SECRET,
        }
        self._lifetimes = {
            TokenKind.ACCESS: timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            TokenKind.REFRESH: timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
        }

    def _encode(self, kind: TokenKind, user_id: str, expires_delta: Optional[timedelta],
                extra: Optional[dict] = None) -> tuple[str, datetime]:
        issued_at = datetime.now(timezone.utc)
        expire = issued_at + (expires_delta if expires_delta is not None else self._lifetimes[kind])

        payload = {
            "sub": user_id,
            "type": kind.value,
            "jti": secrets.token_urlsafe(16),
            "iat": issued_at,
            "exp": expire,
        }
        if extra:
            payload.update(extra)

        return jwt.encode(payload, self._secrets[kind], algorithm=self._algorithm), expire

    def issue_access_token(self, user_id: str, expires_delta: timedelta = None) -> str:
        """
        Creates a short-lived access token.

        Access tokens are verified statelessly and never looked up in the
        database.
        """
        token, _ = self._encode(TokenKind.ACCESS, user_id, expires_delta)
        return token

    def issue_refresh_token(self, user_id: str, session_id: str,
                            expires_delta: timedelta = None) -> tuple[str, datetime]:
        """
        Creates a long-lived refresh token bound to a session row.

        Returns:
            Tuple of (refresh_token, expires_at)
        """
        return self._encode(TokenKind.REFRESH, user_id, expires_delta, {"sid": session_id})

    def issue_pair(self, user_id: str, session_id: str) -> TokenPair:
        access_token = self.issue_access_token(user_id)
        refresh_token, expires_at = self.issue_refresh_token(user_id, session_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_expires_at=expires_at,
        )

    def verify(self, token: str, kind: TokenKind) -> Result[TokenClaims, TokenFailure]:
        """
        Checks structure, signature and expiry, in that order.

        A token of the other kind fails on the signature, since the secrets
        differ.
        """
        if not token or not isinstance(token, str):
            return Result.failure(TokenFailure.MALFORMED)

        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            return Result.failure(TokenFailure.MALFORMED)

        try:
            payload = jwt.decode(token, self._secrets[kind], algorithms=[self._algorithm])
        except ExpiredSignatureError:
            return Result.failure(TokenFailure.EXPIRED)
        except JWTClaimsError:
            # Signature checked out, but a registered claim has the wrong type
            return Result.failure(TokenFailure.MALFORMED)
        except JWTError:
            return Result.failure(TokenFailure.INVALID_SIGNATURE)

        user_id = payload.get("sub")
        jti = payload.get("jti")
        session_id = payload.get("sid")
        issued_at = payload.get("iat")

        if payload.get("type") != kind.value or not isinstance(user_id, str) or not jti:
            return Result.failure(TokenFailure.MALFORMED)
        if kind is TokenKind.REFRESH and not session_id:
            return Result.failure(TokenFailure.MALFORMED)
        if not isinstance(issued_at, (int, float)):
            return Result.failure(TokenFailure.MALFORMED)

        return Result.success(TokenClaims(
            user_id=user_id,
            kind=kind,
            jti=jti,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            session_id=session_id,
        ))
