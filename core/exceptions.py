import functools
import logging

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that are safe to show to the caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class InternalServerError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def service_operation(error_message: str):
    """
    Wrap a service method so the session is rolled back on any failure,
    domain errors reach the caller unchanged, and anything else is logged
    and re-raised as InternalServerError with a generic message.

    The decorated method's instance must expose the SQLAlchemy session as `db`.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except AppError:
                # Drop any half-applied changes before reporting
                self.db.rollback()
                raise
            except Exception as e:
                self.db.rollback()
                logger.exception(f"{error_message}: {e}")
                raise InternalServerError(error_message) from e
        return wrapper
    return decorator
