"""
Domain errors and the DRF exception handler.

Every API failure is rendered as {"success": false, "message": ..., "errors": ...}.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import DatabaseError, IntegrityError
import logging

logger = logging.getLogger(__name__)


class SnippetLibraryError(Exception):
    """Base class for errors raised by the service layer."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'An unexpected error occurred.'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(SnippetLibraryError):
    """Malformed or missing input. Raised before anything is written."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input.'


class NotFoundError(SnippetLibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found.'


class AuthorizationError(SnippetLibraryError):
    """Authenticated, but not allowed to do this."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Not authorized to perform this action.'


class UnsupportedLanguageError(ValidationError):
    default_message = 'Language is not supported.'


class ExecutionServiceError(SnippetLibraryError):
    """The external code execution service failed or timed out."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Code execution service is unavailable.'


class ServerError(SnippetLibraryError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Server error'


def _envelope(message, errors=None, **extra):
    body = {'success': False, 'message': message}
    if errors is not None:
        body['errors'] = errors
    body.update(extra)
    return body


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Maps domain errors to their HTTP status
    2. Wraps DRF's own errors in the success envelope
    3. Logs and hides everything unexpected
    """
    if isinstance(exc, ExecutionServiceError):
        logger.warning("Execution service failure: %s", exc.message)
        return Response(
            _envelope('Execution failed', output=None, error=exc.message),
            status=exc.status_code
        )

    if isinstance(exc, SnippetLibraryError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return Response(
            _envelope(exc.message, exc.errors),
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        detail = response.data
        if isinstance(detail, dict) and set(detail) == {'detail'}:
            response.data = _envelope(str(detail['detail']))
        else:
            response.data = _envelope('Invalid input.', detail)
        return response

    if isinstance(exc, IntegrityError):
        logger.warning(f"IntegrityError: {exc}")
        return Response(
            _envelope('Data integrity error. This may be a duplicate entry.'),
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, DatabaseError):
        logger.exception(f"Database error: {exc}")
        return Response(
            _envelope(ServerError.default_message),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Log unexpected exceptions
    logger.exception(f"Unhandled exception: {exc}")

    return Response(
        _envelope('An unexpected error occurred.'),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
