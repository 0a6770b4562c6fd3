import math

from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response


def _timestamp():
    return timezone.now().isoformat()


def success_response(message='Success', data=None, status_code=status.HTTP_200_OK):
    body = {
        'success': True,
        'message': message,
        'timestamp': _timestamp(),
    }
    if data is not None:
        body['data'] = data
    return Response(body, status=status_code)


def error_response(message='Error', status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, errors=None):
    body = {
        'success': False,
        'message': message,
        'timestamp': _timestamp(),
    }
    if errors is not None:
        body['errors'] = errors
    return Response(body, status=status_code)


def get_page_params(request):
    """Read ?page= and ?limit= with the configured ceiling"""
    limits = settings.PAGINATION
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.query_params.get('limit', limits['DEFAULT_LIMIT']))
    except (TypeError, ValueError):
        limit = limits['DEFAULT_LIMIT']
    limit = min(max(limit, 1), limits['MAX_LIMIT'])
    return page, limit


def paginated_response(request, queryset, serializer_class, message='Data fetched successfully'):
    page, limit = get_page_params(request)
    total = queryset.count()
    offset = (page - 1) * limit
    rows = queryset[offset:offset + limit]
    total_pages = math.ceil(total / limit) if total else 0

    return Response({
        'success': True,
        'message': message,
        'data': serializer_class(rows, many=True).data,
        'pagination': {
            'currentPage': page,
            'itemsPerPage': limit,
            'totalItems': total,
            'totalPages': total_pages,
            'hasNextPage': page < total_pages,
            'hasPrevPage': page > 1,
        },
        'timestamp': _timestamp(),
    }, status=status.HTTP_200_OK)
