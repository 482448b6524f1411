import uuid
from core.database import Base
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    # Identity keys, immutable after registration
    user_name = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)

    full_name = Column(String(128), nullable=False)
    avatar_url = Column(String, nullable=False)
    cover_image_url = Column(String, nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
