from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from django.conf import settings

from hotels.models import Staff


class APIKeyAuthentication(BaseAuthentication):
    """
    API key authentication using the X-API-Key header.

    The acting staff member is named by the X-Staff-Id header and becomes
    request.user; the key itself is request.auth.
    """

    def authenticate(self, request):
        api_key = request.META.get('HTTP_X_API_KEY')

        if not api_key:
            return None

        expected_api_key = getattr(settings, 'API_KEY', 'demo')

        if api_key != expected_api_key:
            raise AuthenticationFailed('Invalid API key')

        staff_id = request.META.get('HTTP_X_STAFF_ID')
        if not staff_id:
            raise AuthenticationFailed('X-Staff-Id header is required')

        try:
            staff = Staff.objects.select_related('hotel').get(pk=int(staff_id), is_active=True)
        except (ValueError, Staff.DoesNotExist):
            raise AuthenticationFailed('Unknown or inactive staff member')

        return (staff, api_key)

    def authenticate_header(self, request):
        return 'X-API-Key'
