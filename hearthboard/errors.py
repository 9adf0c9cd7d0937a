import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class HearthboardError(Exception):
    """Base error carrying the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(HearthboardError):
    status_code = 400


class Unauthorized(HearthboardError):
    status_code = 401


class Forbidden(HearthboardError):
    status_code = 403


class NotFound(HearthboardError):
    status_code = 404


class RateLimited(HearthboardError):
    status_code = 429


class InternalError(HearthboardError):
    status_code = 500


@contextmanager
def persistence_errors(message: str) -> Iterator[None]:
    """Turn database failures inside the block into an InternalError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("%s: %s", message, exc)
        raise InternalError(message) from exc
