"""
Transaction guard for the attempt and practice write paths.

    with handle_db_error(self.db, "submit attempt"):
        ...
        self.db.commit()

Typed assessment errors raised inside the block undo any pending writes and
propagate unchanged. Driver failures undo pending writes, are logged and
come out as DatabaseOperationError, which the API reports as a 500.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AssessmentError

logger = logging.getLogger(__name__)


class DatabaseOperationError(Exception):
    """A write path failed inside the database.

    Attributes:
        operation_name: What was being done, e.g. "save answer"
        original_error: The SQLAlchemy exception
        message: Text used for logs; never shown to students
    """

    def __init__(
        self,
        operation_name: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        self.operation_name = operation_name
        self.original_error = original_error
        self.message = message or f"Failed to {operation_name}: {original_error}"
        super().__init__(self.message)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    log_level: int = logging.ERROR,
) -> Iterator[None]:
    """Roll ``db`` back when the block fails.

    Args:
        db: Session whose pending writes belong to the operation
        operation_name: Short verb phrase used in the log line and error
        log_level: Level for the driver-failure log line. Expected races
            (for example a lost unique-index race) can pass WARNING.

    Raises:
        AssessmentError: Whatever the block raised, after rollback
        DatabaseOperationError: For any SQLAlchemyError, after rollback
    """
    try:
        yield
    except AssessmentError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )
        raise DatabaseOperationError(operation_name, e) from e
