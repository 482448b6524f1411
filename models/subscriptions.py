from core.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from .mixins import CreatedAtMixin

class Subscription(Base, CreatedAtMixin):
    """Edge of the social graph: ``subscriber`` follows ``channel``."""
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "channel_id", name="uq_subscription_edge"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    subscriber_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    channel_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
