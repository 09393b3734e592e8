"""
Procurement — Permissions

@file procurement/permissions.py
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

from users.permissions import ROLE_STORE_ADMIN, ROLE_STORE_KEEPER


class CanManagePurchaseOrders(BasePermission):
    """Reads open to authenticated staff; writes for store admins and keepers."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS or user.is_superuser:
            return True
        return user.has_any_role(ROLE_STORE_ADMIN, ROLE_STORE_KEEPER)
