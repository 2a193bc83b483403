"""
Custom permission classes for role based access control.

Roles are read from the authenticated account and matched
case-insensitively, so legacy rows storing 'doctor' or 'ADMIN' are
treated the same as the canonical values.
"""
from rest_framework.permissions import BasePermission

from .models import Role


def account_role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return Role.parse(getattr(user, "role", None))


class HasRole(BasePermission):
    """Allow access to accounts whose role is in ``roles``."""
    roles: frozenset = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return account_role(request) in self.roles


class IsAdminRole(HasRole):
    """Allow access only to administrators."""
    roles = frozenset({Role.ADMIN})


class IsDoctorRole(HasRole):
    """Allow access only to doctors."""
    roles = frozenset({Role.DOCTOR})


class IsPatientRole(HasRole):
    """Allow access only to patients."""
    roles = frozenset({Role.PATIENT})


class IsAdminOrDoctor(HasRole):
    roles = frozenset({Role.ADMIN, Role.DOCTOR})


class IsAdminOrPatient(HasRole):
    roles = frozenset({Role.ADMIN, Role.PATIENT})


class IsAnyRole(HasRole):
    """Any account that resolves to one of the three roles."""
    roles = frozenset(Role)
