"""
Authz permissions for API endpoints.

These gate whole endpoints. Operation-specific role rules are enforced
again inside services through AuthContext.
"""
from rest_framework import permissions

from apps.authz.context import STAFF_ROLES
from apps.authz.models import RoleChoices


def _user_roles(user):
    return set(user.user_roles.values_list('role__name', flat=True))


class IsStaffMember(permissions.BasePermission):
    """Any authenticated user holding at least one clinic role."""
    message = 'Su usuario no tiene un rol asignado.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return bool(_user_roles(request.user) & STAFF_ROLES)


class IsAdminRole(permissions.BasePermission):
    """Only the Admin role."""
    message = 'Solo Admin puede realizar esta operación.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return RoleChoices.ADMIN in _user_roles(request.user)


class DoctorPermission(permissions.BasePermission):
    """
    - Staff: read (needed to book appointments)
    - Admin: write
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        roles = _user_roles(request.user)
        if request.method in permissions.SAFE_METHODS:
            return bool(roles & STAFF_ROLES)
        return RoleChoices.ADMIN in roles
