"""
Typed application errors and the unified API error envelope.

Service code raises :class:`CareAppError` with one of the
:class:`ErrorType` categories.  Because ``CareAppError`` is a DRF
``APIException`` the views do not need to catch it: the exception
handler configured in ``REST_FRAMEWORK['EXCEPTION_HANDLER']`` turns it
(and every other DRF error) into::

    {"ok": false, "error": {"code": ..., "type": ..., "message": ...}}
"""
from __future__ import annotations

import enum
import functools
import logging
from typing import Any, Callable, Optional

from django.http import Http404
from django.utils import timezone
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ErrorType(str, enum.Enum):
    AUTHENTICATION = 'AUTHENTICATION_ERROR'
    AUTHORIZATION = 'AUTHORIZATION_ERROR'
    VALIDATION = 'VALIDATION_ERROR'
    NOT_FOUND = 'NOT_FOUND_ERROR'
    DATABASE = 'DATABASE_ERROR'
    RATE_LIMIT = 'RATE_LIMIT_ERROR'
    EXTERNAL_API = 'EXTERNAL_API_ERROR'
    UNKNOWN = 'UNKNOWN_ERROR'


USER_ERROR_MESSAGES = {
    ErrorType.AUTHENTICATION: 'Please log in to continue.',
    ErrorType.AUTHORIZATION: "You don't have permission to perform this action.",
    ErrorType.VALIDATION: 'The information provided is invalid. Please check and try again.',
    ErrorType.NOT_FOUND: 'The requested information could not be found.',
    ErrorType.DATABASE: 'A database error occurred. Please try again.',
    ErrorType.RATE_LIMIT: 'Too many requests. Please wait a moment and try again.',
    ErrorType.EXTERNAL_API: 'An external service is temporarily unavailable. Please try again later.',
    ErrorType.UNKNOWN: 'An unexpected error occurred. Please try again.',
}

DEFAULT_STATUS = {
    ErrorType.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorType.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorType.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.DATABASE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorType.RATE_LIMIT: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorType.EXTERNAL_API: status.HTTP_502_BAD_GATEWAY,
    ErrorType.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class CareAppError(exceptions.APIException):
    """Application error carrying a category, an HTTP status and context."""

    def __init__(
        self,
        message: str,
        type: ErrorType = ErrorType.UNKNOWN,
        status_code: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(detail=message, code=type.value.lower())
        self.message = message
        self.type = type
        self.status_code = status_code or DEFAULT_STATUS[type]
        self.context = context or {}
        self.timestamp = timezone.now()

    def __str__(self) -> str:
        return self.message


class ConflictError(CareAppError):
    """A write based on stale data (the stored version moved on)."""

    def __init__(self, message: str, context: Optional[dict] = None):
        super().__init__(message, ErrorType.VALIDATION, status.HTTP_409_CONFLICT, context)


def log_error(error: BaseException, operation: str, context: Optional[dict] = None) -> dict:
    """Emit one structured ERROR record for ``error`` and return it."""
    record = {
        'operation': operation,
        'type': getattr(error, 'type', ErrorType.UNKNOWN).value,
        'message': str(error),
        'context': {**getattr(error, 'context', {}), **(context or {})},
        'timestamp': timezone.now().isoformat(),
    }
    logger.error(
        '%s failed: %s', operation, record['message'],
        extra={'operation': operation, 'error_type': record['type'], 'extra_data': record['context']},
    )
    return record


def user_error_message(error: BaseException) -> str:
    if isinstance(error, CareAppError):
        return error.message
    return USER_ERROR_MESSAGES[ErrorType.UNKNOWN]


def with_error_handling(operation: str) -> Callable:
    """Log failures of the wrapped callable.

    ``CareAppError`` is re-raised unchanged; anything else becomes an
    UNKNOWN error with the generic message, chained to the original.
    """
    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except CareAppError as e:
                log_error(e, operation)
                raise
            except Exception as e:
                log_error(e, operation)
                raise CareAppError(
                    USER_ERROR_MESSAGES[ErrorType.UNKNOWN], ErrorType.UNKNOWN,
                    context={'operation': operation},
                ) from e
        return wrapper
    return decorator


def validate_required(value: Any, field: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise CareAppError(f'{field} is required', ErrorType.VALIDATION, context={'field': field})
    return value


def _type_for_status(code: int) -> ErrorType:
    if code == status.HTTP_401_UNAUTHORIZED:
        return ErrorType.AUTHENTICATION
    if code == status.HTTP_403_FORBIDDEN:
        return ErrorType.AUTHORIZATION
    if code == status.HTTP_404_NOT_FOUND:
        return ErrorType.NOT_FOUND
    if code == status.HTTP_429_TOO_MANY_REQUESTS:
        return ErrorType.RATE_LIMIT
    if 400 <= code < 500:
        return ErrorType.VALIDATION
    return ErrorType.UNKNOWN


def api_exception_handler(exc, context):
    if isinstance(exc, CareAppError):
        body = {'code': exc.type.value.lower(), 'type': exc.type.value, 'message': exc.message}
        return Response({'ok': False, 'error': body}, status=exc.status_code)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        # unhandled: log the real cause, hide it from the client
        log_error(exc, getattr(context.get('view'), '__name__', 'api'))
        body = {
            'code': 'server_error',
            'type': ErrorType.UNKNOWN.value,
            'message': user_error_message(exc),
        }
        return Response({'ok': False, 'error': body}, status=500)

    err_type = _type_for_status(resp.status_code)
    if isinstance(exc, Http404):
        message: Any = USER_ERROR_MESSAGES[ErrorType.NOT_FOUND]
    elif isinstance(resp.data, dict):
        message = resp.data.get('detail') or resp.data
    else:
        message = resp.data
    code = 'api_error'
    if isinstance(exc, exceptions.APIException):
        codes = exc.get_codes()
        code = codes if isinstance(codes, str) else 'invalid'
    return Response(
        {'ok': False, 'error': {'code': code, 'type': err_type.value, 'message': message}},
        status=resp.status_code,
        headers={h: resp[h] for h in ('WWW-Authenticate', 'Retry-After') if h in resp},
    )
