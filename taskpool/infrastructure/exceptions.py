"""Infrastructure exceptions for persistence operations.

Storage errors extend TaskpoolException so callers can handle them next
to the domain errors. Raw SQLAlchemy errors are wrapped at the service
boundary with translate_storage_errors; typed domain errors pass through.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from taskpool.domain.exceptions import TaskpoolException
from taskpool.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class StorageException(TaskpoolException):
    """A lower-level persistence failure, surfaced but not interpreted further.

    The caller decides whether to retry (the enclosing transaction is
    rolled back by get_db_transactional).
    """

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize with the failed operation and the driver message.

        Args:
            operation: Service operation that was running (e.g. 'claim_task').
            reason: Underlying error text.
        """
        super().__init__(
            f"Storage failure during {operation}",
            "STORAGE_ERROR",
            {"operation": operation, "reason": reason},
        )
        self.operation = operation


@contextmanager
def translate_storage_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemyError raised inside the block as StorageException."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Storage failure during %s: %s", operation, e, exc_info=True)
        raise StorageException(operation, str(e)) from e
