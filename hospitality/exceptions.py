"""
Domain errors and the response envelope for failures.

Every error leaves the API as
``{"success": false, "message": ..., "errors": [...], "timestamp": ...}``
with ``errors`` present only for validation failures.
"""

from django.http import Http404
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

from .responses import error_response


class BadRequest(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bad request'
    default_code = 'bad_request'


class Forbidden(exceptions.APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access forbidden'
    default_code = 'forbidden'


class NotFound(exceptions.APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found'
    default_code = 'not_found'


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict'
    default_code = 'conflict'


def flatten_errors(detail, prefix=''):
    """Turn DRF's nested error dict/list into ["field: message", ...]"""
    messages = []
    if isinstance(detail, dict):
        for field, value in detail.items():
            if field == 'non_field_errors':
                key = prefix
            else:
                key = f"{prefix}.{field}" if prefix else str(field)
            messages.extend(flatten_errors(value, key))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                messages.extend(flatten_errors(value, f"{prefix}[{index}]" if prefix else str(index)))
            else:
                messages.extend(flatten_errors(value, prefix))
    else:
        messages.append(f"{prefix}: {detail}" if prefix else str(detail))
    return messages


def envelope_exception_handler(exc, context):
    if isinstance(exc, Http404):
        exc = NotFound(str(exc) or None)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = Forbidden()

    response = exception_handler(exc, context)
    if response is None:
        # Not an API exception: let Django turn it into a 500
        return None

    if isinstance(exc, exceptions.ValidationError):
        body = error_response('Validation failed', response.status_code, errors=flatten_errors(exc.detail))
    else:
        detail = exc.detail if isinstance(exc, exceptions.APIException) else str(exc)
        if isinstance(detail, (list, dict)):
            body = error_response('Request failed', response.status_code, errors=flatten_errors(detail))
        else:
            body = error_response(str(detail), response.status_code)

    for header in ('WWW-Authenticate', 'Allow', 'Retry-After'):
        if header in response:
            body[header] = response[header]
    return body
