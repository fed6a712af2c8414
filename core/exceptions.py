"""
Error taxonomy shared by all service layers, and the DRF exception handler
that renders every failure into the JSON error envelope:

    {"success": false, "message": "...", "error": <detail>}

The "error" key is only present when settings.EXPOSE_ERROR_DETAILS is on.
"""
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base class for errors raised by the service layer."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'An unexpected error occurred'

    def __init__(self, message: str = None, detail=None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request data'


class AuthenticationError(InventoryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Invalid email or password'


class PermissionDeniedError(InventoryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action'


class NotFoundError(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found'


class InvalidTransitionError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid status transition'


class AlreadyReturnedError(InvalidTransitionError):
    default_message = 'Loan has already been returned'


class ConflictError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Operation conflicts with existing data'


class InsufficientStockError(ConflictError):
    """Raised when a stock movement would take more units than are on hand."""
    default_message = 'Insufficient stock'

    def __init__(self, shortages):
        self.shortages = shortages
        summary = '; '.join(
            f"{s['name']}: requested {s['requested']}, available {s['available']}"
            for s in shortages
        )
        super().__init__(f"Insufficient stock: {summary}", detail=shortages)


class PersistenceError(InventoryError):
    default_message = 'Database error'


def error_envelope(message: str, detail=None) -> dict:
    body = {'success': False, 'message': message}
    if getattr(settings, 'EXPOSE_ERROR_DETAILS', False) and detail is not None:
        body['error'] = detail
    return body


def _first_message(data) -> str:
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        for field, errors in data.items():
            return f"{field}: {_first_message(errors)}"
    if isinstance(data, (list, tuple)) and data:
        return _first_message(data[0])
    return str(data)


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER.

    Maps service errors to their status codes, reshapes DRF's own errors into
    the envelope, and turns anything else into a logged 500.
    """
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown view'

    if isinstance(exc, InventoryError):
        if exc.status_code >= 500:
            logger.exception(f"{view_name}: {exc.message}")
        else:
            logger.warning(f"{view_name}: {exc.message}")
        return Response(
            error_envelope(exc.message, exc.detail if exc.detail is not None else str(exc)),
            status=exc.status_code,
        )

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()

    if isinstance(exc, drf_exceptions.APIException):
        headers = {}
        if getattr(exc, 'wait', None):
            headers['Retry-After'] = str(int(exc.wait))
        return Response(
            error_envelope(_first_message(exc.detail), exc.detail),
            status=exc.status_code,
            headers=headers,
        )

    if isinstance(exc, DatabaseError):
        logger.exception(f"{view_name}: database error")
        return Response(
            error_envelope(PersistenceError.default_message, str(exc)),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.exception(f"Unexpected error in {view_name}: {exc}")
    return Response(
        error_envelope(InventoryError.default_message, str(exc)),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
