"""
Role based permission classes for the sync API.
"""
from rest_framework.permissions import BasePermission

from .models import User

SYNC_ROLES = {User.ROLE_ADMINISTRATOR, User.ROLE_SUPERVISOR, User.ROLE_DOCTOR, User.ROLE_USER}
AUDIT_ROLES = {User.ROLE_ADMINISTRATOR, User.ROLE_SUPERVISOR}


class HasSyncRole(BasePermission):
    """Authenticated user with one of the sync roles."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in SYNC_ROLES)


class IsSyncAuditor(BasePermission):
    """Administrators and supervisors may review sync health and conflicts."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in AUDIT_ROLES)
