from models.users import User
from models.sessions import UserSession
from models.subscriptions import Subscription

__all__ = ["User", "UserSession", "Subscription"]
