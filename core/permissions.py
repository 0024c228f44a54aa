"""
DRF permissions backed by the role-scoped session gate.
"""
from rest_framework.permissions import BasePermission

from utils.container import get_container

from .constants import UserRole


class RoleSessionRequired(BasePermission):
    """
    Validates the caller's session for one of `roles` and attaches it to the
    request as `session_record`. A missing or expired session raises
    UNAUTHORIZED "Session Expired, Login Again to Continue".
    """
    roles = ()

    def has_permission(self, request, view):
        request.session_record = get_container().gate.validate_authorization(request, *self.roles)
        return True


class IsCustomer(RoleSessionRequired):
    roles = (UserRole.CUSTOMER,)


class IsAdmin(RoleSessionRequired):
    roles = (UserRole.ADMIN,)


class IsCustomerOrAdmin(RoleSessionRequired):
    roles = (UserRole.CUSTOMER, UserRole.ADMIN)
