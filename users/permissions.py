"""
Users — DRF Permission Classes

Role-based permission checks shared by the inventory ViewSets.

@file users/permissions.py
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

ROLE_STORE_ADMIN = 'STORE_ADMIN'
ROLE_PHARMACIST = 'PHARMACIST'
ROLE_STORE_KEEPER = 'STORE_KEEPER'
ROLE_NURSE = 'NURSE'
ROLE_AUDITOR = 'AUDITOR'


class IsActiveUser(BasePermission):
    """Requires user to be authenticated and have ACTIVE status."""

    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and getattr(request.user, 'status', None) == 'ACTIVE'
        )


class HasRole(BasePermission):
    """
    Checks that the user holds one of the roles listed in
    ``view.required_roles``. Superusers always pass.

    Usage::

        class MyView(APIView):
            permission_classes = [IsAuthenticated, HasRole]
            required_roles = [ROLE_STORE_ADMIN, ROLE_STORE_KEEPER]
    """

    def has_permission(self, request, view):
        required = getattr(view, 'required_roles', [])
        if not required:
            return True
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return user.has_any_role(*required)


class ReadOnlyOrHasRole(HasRole):
    """Safe methods open to authenticated users; writes need one of ``view.required_roles``."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)
