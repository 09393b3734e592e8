"""
Stock — Permissions

Ledger and balance reads are open to authenticated staff. Operations
that move stock are restricted by role.

@file stock/permissions.py
"""

from rest_framework.permissions import BasePermission

from users.permissions import (
    ROLE_PHARMACIST,
    ROLE_STORE_ADMIN,
    ROLE_STORE_KEEPER,
)


class _RolePermission(BasePermission):
    roles: tuple[str, ...] = ()

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return user.has_any_role(*self.roles)


class CanReceiveStock(_RolePermission):
    roles = (ROLE_STORE_ADMIN, ROLE_STORE_KEEPER, ROLE_PHARMACIST)


class CanAllocateStock(_RolePermission):
    roles = (ROLE_STORE_ADMIN, ROLE_STORE_KEEPER, ROLE_PHARMACIST)


class CanReconcileStock(_RolePermission):
    """Physical counts are posted by store staff only."""
    roles = (ROLE_STORE_ADMIN, ROLE_STORE_KEEPER)


class CanWriteOffStock(_RolePermission):
    roles = (ROLE_STORE_ADMIN, ROLE_PHARMACIST)
