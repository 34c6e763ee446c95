"""
Error envelope for the API.

Every error body leaving the API has the shape ``{"error": "<message>"}``.
Domain services raise ``ServiceError`` subclasses carrying the HTTP status
the view should answer with.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors raised by service functions"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


def _flatten_detail(detail):
    """Reduce DRF's nested error details to one readable message"""
    if isinstance(detail, dict):
        if 'detail' in detail:
            return _flatten_detail(detail['detail'])
        parts = []
        for field, value in detail.items():
            message = _flatten_detail(value)
            parts.append(message if field == 'non_field_errors' else f"{field}: {message}")
        return '; '.join(parts)
    if isinstance(detail, (list, tuple)):
        return ' '.join(_flatten_detail(item) for item in detail)
    return str(detail)


def error_envelope_exception_handler(exc, context):
    """DRF exception handler that rewrites error bodies to {"error": ...}"""
    if isinstance(exc, ServiceError):
        return Response({'error': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(response.data, dict) and set(response.data.keys()) == {'error'}:
        return response

    message = _flatten_detail(response.data)
    fields = response.data if isinstance(response.data, dict) and 'detail' not in response.data else None
    response.data = {'error': message}
    if fields:
        response.data['fields'] = fields
    return response


def validation_error_response(errors):
    """Serializer errors in the {"error": ...} envelope, keeping the per-field detail"""
    return Response({'error': _flatten_detail(errors), 'fields': errors}, status=status.HTTP_400_BAD_REQUEST)
