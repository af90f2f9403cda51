"""
Translation of service and store errors into HTTP responses.

Store and model errors are passed through as a 500 with a message. Two
store failures that usually mean a misconfigured deployment (database
credentials, tables that were never created) get a diagnostic hint instead.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from coach.core.errors import GenerationError, SessionStateError, UnauthorizedError

logger = logging.getLogger(__name__)

CREDENTIALS_ERROR_MESSAGE = (
    "Backend authentication with the database failed. This is a common issue during local development. "
    "Check that DATABASE_URL in the backend environment contains valid credentials and restart the backend."
)

SCHEMA_ERROR_MESSAGE = (
    "A backend database table is missing. This is common on first-time setup. "
    "Start the API once so it can create its tables (or call coach.db.init_db.init_db()) "
    "and check the backend console logs. The original error was: {error}"
)

_CREDENTIAL_MARKERS = (
    "password authentication failed",
    "access denied for user",
    "authentication failed",
)
_SCHEMA_MARKERS = (
    "no such table",
    "does not exist",
    "doesn't exist",
)


def has_credentials_error(error: Exception) -> bool:
    message = str(error).lower()
    return isinstance(error, SQLAlchemyError) and any(marker in message for marker in _CREDENTIAL_MARKERS)


def has_schema_error(error: Exception) -> bool:
    message = str(error).lower()
    return isinstance(error, SQLAlchemyError) and any(marker in message for marker in _SCHEMA_MARKERS)


def describe_store_error(error: Exception) -> Optional[str]:
    """A friendlier message for recognized configuration failures, else None."""
    if has_credentials_error(error):
        return CREDENTIALS_ERROR_MESSAGE
    if has_schema_error(error):
        return SCHEMA_ERROR_MESSAGE.format(error=getattr(error, "orig", None) or error)
    return None


def translate_error(error: Exception, context: str, default_message: str) -> HTTPException:
    """
    Map an exception raised while handling a request to an HTTPException.

    Args:
        error: The exception that was raised
        context: What was being done, for the log line
        default_message: Message returned for unrecognized failures
    """
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=error.message)
    if isinstance(error, SessionStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    if isinstance(error, ValueError) and not isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    logger.error(f"{context}: {error}", exc_info=True)

    if isinstance(error, GenerationError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=describe_store_error(error) or default_message,
    )
