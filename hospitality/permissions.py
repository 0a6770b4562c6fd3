from rest_framework.permissions import BasePermission

from hotels.models import Staff

ROLE = Staff.Role

# Role groups used by the views' allowed_roles
MANAGEMENT_ROLES = (ROLE.SUPER_ADMIN, ROLE.HOTEL_ADMIN, ROLE.MANAGER)
FRONT_DESK_ROLES = MANAGEMENT_ROLES + (ROLE.CASHIER,)
KITCHEN_ROLES = FRONT_DESK_ROLES + (ROLE.KITCHEN_STAFF,)


class IsStaff(BasePermission):
    """
    Allows requests authenticated by APIKeyAuthentication
    """

    def has_permission(self, request, view):
        # APIKeyAuthentication returns (staff, api_key) on success
        return request.auth is not None and isinstance(request.user, Staff)


class HasRole(IsStaff):
    """
    Restricts a view to the roles listed on the view's allowed_roles,
    optionally per HTTP method through allowed_roles_by_method.
    """

    message = 'Your role is not allowed to perform this action'

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False

        by_method = getattr(view, 'allowed_roles_by_method', None) or {}
        roles = by_method.get(request.method, getattr(view, 'allowed_roles', None))
        if roles is None:
            return True
        return request.user.role in roles
