"""
Medicines — Permissions

The catalogue is readable by all staff. Changes are restricted to
STORE_ADMIN and PHARMACIST roles.

@file medicines/permissions.py
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

from users.permissions import ROLE_PHARMACIST, ROLE_STORE_ADMIN


class CanModifyMedicine(BasePermission):
    """Read is open to authenticated users; write requires catalogue roles."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS or user.is_superuser:
            return True
        return user.has_any_role(ROLE_STORE_ADMIN, ROLE_PHARMACIST)
