"""
Domain error taxonomy and the project-wide DRF exception handler.

Services raise these; the handler turns every exception leaving a view into
the ``{"success": false, "error": ...}`` envelope.
"""
import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class DomainError(exceptions.APIException):
    """Base class for errors raised by the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed'
    default_code = 'error'


class Unauthenticated(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication required'
    default_code = 'unauthenticated'


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied. Insufficient permissions.'
    default_code = 'forbidden'


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found'
    default_code = 'not_found'


class EmptyCart(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Cart is empty. Cannot create order.'
    default_code = 'empty_cart'


class OutOfStock(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Product is out of stock'
    default_code = 'out_of_stock'


class InsufficientStock(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock'
    default_code = 'insufficient_stock'


class ProductGone(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Product no longer exists'
    default_code = 'product_gone'


class InvalidTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Invalid order status transition'
    default_code = 'invalid_transition'


class ValidationFailed(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed'
    default_code = 'validation_failed'


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists'
    default_code = 'conflict'


def _first_message(detail) -> str:
    """Flatten a DRF error detail to the first human readable message."""
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field in ('non_field_errors', 'detail'):
                return message
            return f"{field}: {message}"
        return 'Validation failed'
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else 'Validation failed'
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    Render every error as ``{"success": false, "error": <message>}``.

    - DRF/domain exceptions keep their status code.
    - Serializer validation errors also carry field-level ``details``.
    - Anything else is an Internal error: logged with traceback, returned as a
      generic 500 (exception text only when DEBUG is on).
    """
    # Imported here: rest_framework.views loads the authentication classes,
    # which import this module.
    from rest_framework.views import exception_handler

    if isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = Forbidden()
    elif isinstance(exc, exceptions.NotAuthenticated):
        exc = Unauthenticated(exc.detail)
    elif isinstance(exc, exceptions.PermissionDenied) and not isinstance(exc, DomainError):
        exc = Forbidden(exc.detail)

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(
            f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}"
        )
        body = {'success': False, 'error': 'Internal server error'}
        if settings.DEBUG:
            body['detail'] = str(exc)
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = {'success': False, 'error': _first_message(exc.detail)}
    if isinstance(exc, exceptions.ValidationError):
        body['details'] = exc.detail
    elif response.status_code >= 500:
        logger.error(f"Server error {response.status_code}: {exc}")
    response.data = body
    return response
