"""
Dispensing — Permissions

@file dispensing/permissions.py
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

from users.permissions import (
    ROLE_NURSE,
    ROLE_PHARMACIST,
    ROLE_STORE_ADMIN,
    ROLE_STORE_KEEPER,
)


class CanDispense(BasePermission):
    """Pharmacists dispense to patients and walk-in clients."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS or user.is_superuser:
            return True
        return user.has_any_role(ROLE_PHARMACIST, ROLE_STORE_ADMIN)


class CanRequestStock(BasePermission):
    """Ward staff submit requisitions; the store issues them."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS or user.is_superuser:
            return True
        return user.has_any_role(ROLE_NURSE, ROLE_PHARMACIST, ROLE_STORE_KEEPER, ROLE_STORE_ADMIN)


class CanIssueRequisition(BasePermission):

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return user.has_any_role(ROLE_STORE_KEEPER, ROLE_STORE_ADMIN, ROLE_PHARMACIST)
