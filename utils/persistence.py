from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import AuthError
from utils.logger import get_logger

logger = get_logger(__name__)


def commit(db: Session, action: str) -> Optional[AuthError]:
    """
    Commits the unit of work. On failure the session is rolled back and the
    failure is returned as an ``AuthError`` instead of raised.

    Unique-constraint violations become ``Conflict``, anything else from the
    database becomes ``Internal``.
    """
    try:
        db.commit()
        return None
    except IntegrityError as e:
        db.rollback()
        logger.warning(
            "Integrity error during commit",
            extra={"action": action, "error": str(getattr(e, "orig", e))}
        )
        return AuthError.conflict("Resource already exists")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Database error during commit: {str(e)}",
            extra={"action": action, "error_type": type(e).__name__},
            exc_info=True
        )
        return AuthError.internal()
