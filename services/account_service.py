from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import exists, false, func, or_, select
from sqlalchemy.orm import Session

from core.errors import AuthError
from core.result import Result
from models.subscriptions import Subscription
from models.users import User
from schemas.auth_schemas import RegisterUserRequest
from schemas.user_schemas import ChannelProfile
from services.storage_service import CloudinaryStorage
from utils.hashing import get_password_hash
from utils.logger import get_logger
from utils.persistence import commit

logger = get_logger(__name__)


def _discard(*paths: Optional[str]):
    """Removes temp uploads that never reached storage."""
    for path in paths:
        if path:
            Path(path).unlink(missing_ok=True)


def _validation_details(exc: ValidationError) -> list:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


class AccountService:

    @staticmethod
    def find_by_identifier(db: Session, user_name: Optional[str] = None,
                           email: Optional[str] = None) -> User | None:
        """Exact lookup matching the username (case-insensitive) or the email."""
        conditions = []
        if user_name:
            conditions.append(User.user_name == user_name.strip().lower())
        if email:
            conditions.append(User.email == email.strip().lower())
        if not conditions:
            return None
        matches = db.query(User).filter(or_(*conditions)).all()
        if not matches:
            return None
        # Both given may match two accounts; the username match wins
        for user in matches:
            if user_name and user.user_name == user_name.strip().lower():
                return user
        return matches[0]

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> User | None:
        return db.query(User).filter(User.id == user_id).one_or_none()

    @staticmethod
    def register(db: Session, storage: CloudinaryStorage, full_name: Optional[str],
                 user_name: Optional[str], email: Optional[str], password: Optional[str],
                 avatar_path: Optional[str], cover_image_path: Optional[str] = None) -> Result[User, AuthError]:
        """
        Creates a new user.

        Flow:
        1. Reject missing/blank fields and malformed values
        2. Reject a taken username or email
        3. Require and upload the avatar, upload the cover if given
        4. Persist the user with a bcrypt password hash
        """
        if any(field is None or not field.strip() for field in [full_name, user_name, email, password]):
            _discard(avatar_path, cover_image_path)
            return Result.failure(AuthError.invalid_input("All fields are required"))

        try:
            data = RegisterUserRequest(
                full_name=full_name, user_name=user_name, email=email.strip(), password=password
            )
        except ValidationError as e:
            _discard(avatar_path, cover_image_path)
            return Result.failure(AuthError.invalid_input(
                "Invalid registration details", _validation_details(e)
            ))

        existing_user = db.query(User).filter(
            or_(User.user_name == data.user_name, User.email == data.email)
        ).first()
        if existing_user:
            logger.warning(
                "Registration attempt with existing username or email",
                extra={"user_name": data.user_name, "email": data.email}
            )
            _discard(avatar_path, cover_image_path)
            return Result.failure(AuthError.conflict("Username or email already exists"))

        if not avatar_path:
            _discard(cover_image_path)
            return Result.failure(AuthError.invalid_input("Avatar image is required"))

        avatar_url = storage.upload(avatar_path)
        if not avatar_url:
            _discard(cover_image_path)
            return Result.failure(AuthError.invalid_input("Avatar image not uploaded"))

        cover_image_url = storage.upload(cover_image_path) or ""

        model = User(
            user_name=data.user_name,
            email=data.email,
            full_name=data.full_name,
            avatar_url=avatar_url,
            cover_image_url=cover_image_url,
            password_hash=get_password_hash(data.password),
        )
        db.add(model)

        error = commit(db, "register")
        if error:
            if error.status_code == 409:
                error = AuthError.conflict("Username or email already exists")
            return Result.failure(error)

        db.refresh(model)
        return Result.success(model)

    @staticmethod
    def get_current_user(db: Session, user_id: str) -> Result[User, AuthError]:
        model = AccountService.get_by_id(db, user_id)
        if not model:
            return Result.failure(AuthError.not_found("User not found"))
        return Result.success(model)

    @staticmethod
    def update_account_details(db: Session, user_id: str, full_name: str) -> Result[User, AuthError]:
        """Only the display name is mutable; username and email are identity keys."""
        if not full_name or not full_name.strip():
            return Result.failure(AuthError.invalid_input("Full name is required"))

        model = AccountService.get_by_id(db, user_id)
        if not model:
            return Result.failure(AuthError.not_found("User not found"))

        model.full_name = full_name.strip()
        error = commit(db, "update_account_details")
        if error:
            return Result.failure(error)

        db.refresh(model)
        return Result.success(model)

    @staticmethod
    def _replace_image(db: Session, storage: CloudinaryStorage, user_id: str,
                       local_path: Optional[str], attribute: str, label: str) -> Result[User, AuthError]:
        if not local_path:
            return Result.failure(AuthError.invalid_input(f"{label} file is missing"))

        model = AccountService.get_by_id(db, user_id)
        if not model:
            _discard(local_path)
            return Result.failure(AuthError.not_found("User not found"))

        url = storage.upload(local_path)
        if not url:
            return Result.failure(AuthError.invalid_input(f"Error while uploading {label.lower()}"))

        setattr(model, attribute, url)
        error = commit(db, f"update_{attribute}")
        if error:
            return Result.failure(error)

        db.refresh(model)
        return Result.success(model)

    @staticmethod
    def update_avatar(db: Session, storage: CloudinaryStorage, user_id: str,
                      local_path: Optional[str]) -> Result[User, AuthError]:
        return AccountService._replace_image(db, storage, user_id, local_path, "avatar_url", "Avatar")

    @staticmethod
    def update_cover_image(db: Session, storage: CloudinaryStorage, user_id: str,
                           local_path: Optional[str]) -> Result[User, AuthError]:
        return AccountService._replace_image(db, storage, user_id, local_path, "cover_image_url", "Cover image")

    @staticmethod
    def subscribe(db: Session, viewer_id: str, channel_user_name: str) -> Result[ChannelProfile, AuthError]:
        """Idempotent: subscribing twice keeps a single edge."""
        channel = AccountService.find_by_identifier(db, user_name=channel_user_name)
        if not channel:
            return Result.failure(AuthError.not_found("Channel does not exist"))
        if channel.id == viewer_id:
            return Result.failure(AuthError.invalid_input("You cannot subscribe to your own channel"))

        already = db.query(Subscription).filter(
            Subscription.subscriber_id == viewer_id,
            Subscription.channel_id == channel.id
        ).first()
        if not already:
            db.add(Subscription(subscriber_id=viewer_id, channel_id=channel.id))
            error = commit(db, "subscribe")
            # A concurrent duplicate hit the unique constraint: the edge exists
            if error and error.status_code != 409:
                return Result.failure(error)

        return AccountService.get_channel_profile(db, channel.user_name, viewer_id)

    @staticmethod
    def unsubscribe(db: Session, viewer_id: str, channel_user_name: str) -> Result[ChannelProfile, AuthError]:
        """Idempotent: removing a missing edge is not an error."""
        channel = AccountService.find_by_identifier(db, user_name=channel_user_name)
        if not channel:
            return Result.failure(AuthError.not_found("Channel does not exist"))

        db.query(Subscription).filter(
            Subscription.subscriber_id == viewer_id,
            Subscription.channel_id == channel.id
        ).delete(synchronize_session=False)
        error = commit(db, "unsubscribe")
        if error:
            return Result.failure(error)

        return AccountService.get_channel_profile(db, channel.user_name, viewer_id)

    @staticmethod
    def get_channel_profile(db: Session, user_name: str,
                            viewer_id: Optional[str] = None) -> Result[ChannelProfile, AuthError]:
        """
        Channel view of a user in a single query.

        subscribers: edges where the user is the channel
        subscribed to: edges where the user is the subscriber
        is_subscribed: whether ``viewer_id`` is among the subscribers
        """
        if not user_name or not user_name.strip():
            return Result.failure(AuthError.invalid_input("Username is missing"))

        subscribers_count = (
            select(func.count(Subscription.id))
            .where(Subscription.channel_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        subscribed_to_count = (
            select(func.count(Subscription.id))
            .where(Subscription.subscriber_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        if viewer_id:
            is_subscribed = exists().where(
                Subscription.channel_id == User.id,
                Subscription.subscriber_id == viewer_id
            ).correlate(User)
        else:
            is_subscribed = false()

        row = db.query(
            User,
            subscribers_count.label("subscribers_count"),
            subscribed_to_count.label("subscribed_to_count"),
            is_subscribed.label("is_subscribed"),
        ).filter(User.user_name == user_name.strip().lower()).one_or_none()

        if row is None:
            return Result.failure(AuthError.not_found("Channel does not exist"))

        user, subscribers, subscribed_to, subscribed = row
        return Result.success(ChannelProfile(
            id=user.id,
            user_name=user.user_name,
            email=user.email,
            full_name=user.full_name,
            avatar_url=user.avatar_url,
            cover_image_url=user.cover_image_url or "",
            subscribers_count=subscribers or 0,
            channels_subscribed_to_count=subscribed_to or 0,
            is_subscribed=bool(subscribed),
        ))
