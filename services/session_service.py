import hashlib
import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import AuthError
from core.result import Result
from models.sessions import UserSession
from models.users import User
from services.account_service import AccountService
from services.token_service import TokenIssuer, TokenKind, TokenPair
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger, sanitize_log_data
from utils.persistence import commit

logger = get_logger(__name__)

INVALID_SESSION = "Invalid or expired session"
STALE_REFRESH_TOKEN = "Refresh token is expired or used"


@dataclass(frozen=True)
class LoginOutcome:
    user: User
    tokens: TokenPair


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class SessionService:
    """
    Login, logout, refresh and password change.

    Session state lives only in ``user_sessions`` rows and in the tokens the
    client holds. One account has at most one active session: a new login
    deletes the previous ones.
    """

    @staticmethod
    def login(db: Session, issuer: TokenIssuer, password: str,
              user_name: Optional[str] = None, email: Optional[str] = None) -> Result[LoginOutcome, AuthError]:
        if not user_name and not email:
            return Result.failure(AuthError.invalid_input("Username or email is required"))

        user = AccountService.find_by_identifier(db, user_name=user_name, email=email)
        if not user:
            logger.warning(
                "Login failed - user not found",
                extra={"user_name": user_name, "email": email}
            )
            return Result.failure(AuthError.not_found("User does not exist"))

        if not verify_password(password or "", user.password_hash):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id}
            )
            return Result.failure(AuthError.unauthorized("Invalid user credentials"))

        session_id = str(uuid.uuid4())
        tokens = issuer.issue_pair(user.id, session_id)

        # Serializes concurrent logins of the same account
        db.query(User).filter(User.id == user.id).with_for_update().one()
        db.query(UserSession).filter(UserSession.user_id == user.id).delete(synchronize_session=False)
        db.add(UserSession(
            id=session_id,
            user_id=user.id,
            refresh_token_hash=hash_token(tokens.refresh_token),
            expires_at=tokens.refresh_expires_at,
        ))
        error = commit(db, "login")
        if error:
            return Result.failure(AuthError.internal() if error.status_code == 409 else error)

        logger.debug(
            "Session opened",
            extra={"user_id": user.id, "session_id": session_id}
        )
        return Result.success(LoginOutcome(user=user, tokens=tokens))

    @staticmethod
    def logout(db: Session, user_id: str) -> Result[None, AuthError]:
        """Idempotent: logging out without an open session is not an error."""
        deleted = db.query(UserSession).filter(
            UserSession.user_id == user_id
        ).delete(synchronize_session=False)
        error = commit(db, "logout")
        if error:
            return Result.failure(error)

        logger.debug("Sessions closed", extra={"user_id": user_id, "sessions": deleted})
        return Result.success(None)

    @staticmethod
    def rotate_refresh_token(db: Session, session_id: str, expected_hash: str,
                             new_hash: str, expires_at: datetime) -> bool:
        """
        Compare-and-swap on the stored refresh token hash.

        The row is only updated if it still holds ``expected_hash``, so of two
        refreshes racing on the same token exactly one sees a matched row.
        """
        try:
            matched = db.query(UserSession).filter(
                UserSession.id == session_id,
                UserSession.refresh_token_hash == expected_hash
            ).update(
                {"refresh_token_hash": new_hash, "expires_at": expires_at},
                synchronize_session=False
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return matched == 1

    @staticmethod
    def refresh(db: Session, issuer: TokenIssuer, presented_token: Optional[str]) -> Result[TokenPair, AuthError]:
        """
        Validates a refresh token against its session and issues a new pair.

        The presented token becomes unusable once this returns successfully,
        even though it has not expired.
        """
        if not presented_token:
            return Result.failure(AuthError.unauthorized("Unauthorized request"))

        verified = issuer.verify(presented_token, TokenKind.REFRESH)
        if not verified.ok:
            logger.debug(
                "Refresh rejected - token verification failed",
                extra=sanitize_log_data({"reason": verified.error.value, "refresh_token": presented_token})
            )
            return Result.failure(AuthError.unauthorized(INVALID_SESSION))

        claims = verified.value
        user = AccountService.get_by_id(db, claims.user_id)
        if not user:
            logger.warning("Refresh rejected - unknown user", extra={"user_id": claims.user_id})
            return Result.failure(AuthError.unauthorized(INVALID_SESSION))

        presented_hash = hash_token(presented_token)
        session = db.query(UserSession).filter(
            UserSession.id == claims.session_id,
            UserSession.user_id == user.id
        ).one_or_none()

        if session is None or not hmac.compare_digest(session.refresh_token_hash, presented_hash):
            logger.warning(
                "Refresh rejected - stale or revoked refresh token",
                extra={"user_id": user.id, "session_id": claims.session_id}
            )
            return Result.failure(AuthError.unauthorized(STALE_REFRESH_TOKEN))

        tokens = issuer.issue_pair(user.id, session.id)
        try:
            rotated = SessionService.rotate_refresh_token(
                db, session.id, presented_hash, hash_token(tokens.refresh_token), tokens.refresh_expires_at
            )
        except SQLAlchemyError as e:
            logger.error(
                f"Refresh failed - database error: {str(e)}",
                extra={"user_id": user.id, "error_type": type(e).__name__},
                exc_info=True
            )
            return Result.failure(AuthError.internal())

        if not rotated:
            logger.warning(
                "Refresh rejected - token already rotated by a concurrent request",
                extra={"user_id": user.id, "session_id": session.id}
            )
            return Result.failure(AuthError.unauthorized(STALE_REFRESH_TOKEN))

        return Result.success(tokens)

    @staticmethod
    def change_password(db: Session, user_id: str, old_password: str, new_password: str) -> Result[None, AuthError]:
        """
        Re-verifies the current password before storing the new hash.

        All sessions of the user are revoked in the same transaction, so a
        stolen refresh token stops working once the password is changed.
        """
        user = AccountService.get_by_id(db, user_id)
        if not user:
            return Result.failure(AuthError.not_found("User not found"))

        if not verify_password(old_password or "", user.password_hash):
            logger.warning("Password change rejected - wrong current password", extra={"user_id": user_id})
            return Result.failure(AuthError.unauthorized("Invalid old password"))

        user.password_hash = get_password_hash(new_password)
        db.query(UserSession).filter(UserSession.user_id == user_id).delete(synchronize_session=False)

        error = commit(db, "change_password")
        if error:
            return Result.failure(error)

        logger.info("Password changed, sessions revoked", extra={"user_id": user_id})
        return Result.success(None)
