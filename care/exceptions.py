import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ApiError(APIException):
    """An API error whose keyword arguments are added to the error body."""

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail, code)
        self.extra = extra


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'conflict'
    default_code = 'conflict'


class InvalidStatusChange(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'invalid status change'
    default_code = 'invalid_transition'


class InvalidCredentials(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid credentials.'
    default_code = 'invalid_credentials'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.error('unhandled API error: %s', exc, exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'internal server error'}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', None) or 'api_error'
    error = {'code': code, 'message': detail}
    error.update(getattr(exc, 'extra', None) or {})
    normalized = Response({'ok': False, 'error': error}, status=resp.status_code)
    for header in ('WWW-Authenticate', 'Retry-After'):
        if header in resp:
            normalized[header] = resp[header]
    return normalized
