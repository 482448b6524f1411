import uuid
from core.database import Base
from sqlalchemy import Column, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin

class UserSession(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    One login session of a user.

    The row id travels inside the refresh token as the ``sid`` claim. Only the
    SHA-256 of the currently valid refresh token is stored; it is swapped on
    every refresh, so a refresh token is usable exactly once.
    """
    __tablename__ = "user_sessions"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #fk
    # unique: one active session per account, also under concurrent logins
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    #relationships
    user = relationship("User", back_populates="sessions")

    refresh_token_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
