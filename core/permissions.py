"""
Role and ownership policy.

Roles are exclusive (admin, vendor, customer) with no hierarchy beyond the
explicit checks below. DRF permission classes guard whole views; the
``ensure_*`` helpers are called by services before they mutate anything.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

from .exceptions import Forbidden, Unauthenticated
from .roles import Role


def is_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.role == Role.ADMIN)


def ensure_authenticated(user):
    if user is None or not user.is_authenticated:
        raise Unauthenticated()


def ensure_role(user, *roles):
    """Raise Forbidden unless ``user`` holds one of ``roles``."""
    ensure_authenticated(user)
    if user.role not in roles:
        raise Forbidden()


def ensure_owner_or_admin(user, owner_id, message=None):
    """Raise Forbidden unless ``user`` is an admin or owns the resource."""
    ensure_authenticated(user)
    if is_admin(user):
        return
    if owner_id is None or str(user.pk) != str(owner_id):
        raise Forbidden(message) if message else Forbidden()


class HasRole(BasePermission):
    """View-level role gate. Subclasses set ``allowed_roles``."""
    allowed_roles = ()

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in self.allowed_roles)


class IsAdmin(HasRole):
    allowed_roles = (Role.ADMIN,)


class IsVendor(HasRole):
    allowed_roles = (Role.VENDOR,)
    message = 'This endpoint is only for vendors'


class ReadOnlyOrAdmin(BasePermission):
    """Public reads, admin-only writes."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return is_admin(request.user)


class ReadOnlyOrVendorOrAdmin(BasePermission):
    """Public reads, vendor/admin writes (ownership checked by services)."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        user = request.user
        return bool(user and user.is_authenticated and user.role in (Role.VENDOR, Role.ADMIN))

