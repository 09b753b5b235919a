# shared/common/exceptions.py
"""
API Errors

Every error leaves the service as::

    {"success": false,
     "error": {"code": "...", "message": "...", "request_id": "...",
               "details": {...}}}

``details`` is present only for field-level validation errors.
"""

import logging
from typing import Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


# =============================================================================
# DOMAIN EXCEPTIONS
# =============================================================================

class ServiceAPIException(exceptions.APIException):
    """APIException carrying a stable machine-readable ``error_code``."""
    error_code = 'ERROR'


class NotFoundException(ServiceAPIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'The requested resource was not found.'
    default_code = 'not_found'
    error_code = 'NOT_FOUND'


class ProposalAlreadyAnsweredException(ServiceAPIException):
    """The party already responded, or the conflict is no longer open."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This proposal can no longer be answered.'
    default_code = 'proposal_closed'
    error_code = 'PROPOSAL_CLOSED'


class ConflictResolvedException(ServiceAPIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The weather conflict has already been resolved.'
    default_code = 'conflict_resolved'
    error_code = 'CONFLICT_RESOLVED'


# Codes for framework exceptions
FRAMEWORK_ERROR_CODES = {
    exceptions.ValidationError: 'VALIDATION_ERROR',
    exceptions.ParseError: 'BAD_REQUEST',
    exceptions.AuthenticationFailed: 'UNAUTHORIZED',
    exceptions.NotAuthenticated: 'UNAUTHORIZED',
    exceptions.PermissionDenied: 'FORBIDDEN',
    exceptions.NotFound: 'NOT_FOUND',
    exceptions.MethodNotAllowed: 'METHOD_NOT_ALLOWED',
    exceptions.Throttled: 'RATE_LIMITED',
    Http404: 'NOT_FOUND',
    DjangoPermissionDenied: 'FORBIDDEN',
}


# =============================================================================
# EXCEPTION HANDLER
# =============================================================================

def _error_body(code: str, message: str, request_id: Optional[str], details=None) -> dict:
    error = {'code': code, 'message': message, 'request_id': request_id}
    if details is not None:
        error['details'] = details
    return {'success': False, 'error': error}


def _error_code(exc) -> str:
    if isinstance(exc, ServiceAPIException):
        return exc.error_code
    for exc_class, code in FRAMEWORK_ERROR_CODES.items():
        if isinstance(exc, exc_class):
            return code
    return 'ERROR'


def _first_message(detail) -> str:
    if isinstance(detail, dict):
        if 'detail' in detail:
            return str(detail['detail'])
        return 'Validation error'
    if isinstance(detail, list):
        return str(detail[0]) if detail else 'Validation error'
    return str(detail)


def custom_exception_handler(exc, context) -> Optional[Response]:
    """DRF exception handler producing the shared error envelope."""
    request = context.get('request')
    request_id = getattr(request, 'request_id', None)

    if isinstance(exc, DjangoValidationError):
        details = getattr(exc, 'message_dict', None) or {'non_field_errors': exc.messages}
        exc = exceptions.ValidationError(detail=details)

    response = exception_handler(exc, context)

    if response is not None:
        detail = getattr(exc, 'detail', response.data)
        details = detail if isinstance(detail, dict) and 'detail' not in detail else None
        response.data = _error_body(_error_code(exc), _first_message(detail), request_id, details)
        return response

    logger.exception(
        f"Unhandled {type(exc).__name__}: {exc}",
        extra={'request_id': request_id, 'exception_type': type(exc).__name__}
    )
    message = str(exc) if settings.DEBUG else 'An unexpected error occurred. Please try again later.'
    return Response(
        _error_body('INTERNAL_ERROR', message, request_id),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
