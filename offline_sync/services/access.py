"""
Access-control resolution for sync callers.

Turns an authenticated user into an :class:`AccessContext` (role and
facility) and answers two questions for the sync services: which
documents the caller may see (a facility scope predicate) and which
collections the caller may read or write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.db.models import Q

from ..exceptions import AccessDeniedError
from ..models import User

ROLE_COLLECTION_PERMISSIONS = {
    User.ROLE_ADMINISTRATOR: {
        'patients': {'create', 'read', 'update', 'delete'},
        'immunization_records': {'create', 'read', 'update', 'delete'},
        'facilities': {'create', 'read', 'update', 'delete'},
        'vaccines': {'create', 'read', 'update', 'delete'},
        'notifications': {'create', 'read', 'update', 'delete'},
    },
    User.ROLE_SUPERVISOR: {
        'patients': {'create', 'read', 'update', 'delete'},
        'immunization_records': {'create', 'read', 'update', 'delete'},
        'facilities': {'read', 'update'},
        'vaccines': {'read', 'update'},
        'notifications': {'create', 'read', 'update', 'delete'},
    },
    User.ROLE_DOCTOR: {
        'patients': {'create', 'read', 'update'},
        'immunization_records': {'create', 'read', 'update'},
        'facilities': {'read'},
        'vaccines': {'read'},
        'notifications': {'create', 'read', 'update'},
    },
    User.ROLE_USER: {
        'patients': {'read'},
        'immunization_records': {'read'},
        'facilities': {'read'},
        'vaccines': {'read'},
        'notifications': {'read'},
    },
}


@dataclass(frozen=True)
class AccessContext:
    user_id: Optional[int]
    role: str
    facility_id: Optional[str]
    can_access_all_facilities: bool

    @property
    def facility_scoped(self) -> bool:
        return not self.can_access_all_facilities


def resolve_access(user) -> AccessContext:
    """Build the access context for ``user``.

    Raises :class:`AccessDeniedError` for facility-scoped roles that are
    not bound to a facility, since no scope can be derived for them.
    """
    role = getattr(user, 'role', '') or User.ROLE_USER
    facility_id = getattr(user, 'facility_id', None)
    can_access_all = role == User.ROLE_ADMINISTRATOR
    if not can_access_all and not facility_id:
        raise AccessDeniedError('user without bound facility cannot sync')
    return AccessContext(
        user_id=getattr(user, 'id', None),
        role=role,
        facility_id=facility_id,
        can_access_all_facilities=can_access_all,
    )


def facility_scope(access: AccessContext) -> Q:
    """Predicate restricting stored rows to what ``access`` may see.

    Rows without an owning facility are shared reference data.
    """
    if access.can_access_all_facilities:
        return Q()
    return Q(facility_id=access.facility_id) | Q(facility_id='')


def can_access_collection(access: AccessContext, collection: str, action: str) -> bool:
    allowed = ROLE_COLLECTION_PERMISSIONS.get(access.role, {}).get(collection, set())
    return action in allowed


def ensure_collection_access(access: AccessContext, collection: str, action: str) -> None:
    if not can_access_collection(access, collection, action):
        raise AccessDeniedError(f'role {access.role} may not {action} {collection}')


def ensure_facility_writable(access: AccessContext, facility_id: Optional[str]) -> None:
    """Facility-scoped callers may only write their own or unowned documents."""
    if access.can_access_all_facilities or not facility_id:
        return
    if facility_id != access.facility_id:
        raise AccessDeniedError('document belongs to another facility')
