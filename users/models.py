"""
Users — Models

Facility staff accounts with UUID PK, email login, department and
status lifecycle, plus RBAC (Role + UserRole) used by the stock,
procurement and dispensing permission classes.

@file users/models.py
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, RetainedModel
from users.managers import UserManager


class Department(models.TextChoices):
    PHARMACY = 'PHARMACY', _('Pharmacy')
    SURGERY = 'SURGERY', _('Surgery')
    PEDIATRICS = 'PEDIATRICS', _('Pediatrics')
    MATERNITY = 'MATERNITY', _('Maternity')
    EMERGENCY = 'EMERGENCY', _('Emergency')
    OUTPATIENT = 'OUTPATIENT', _('Outpatient')
    LABORATORY = 'LABORATORY', _('Laboratory')
    RADIOLOGY = 'RADIOLOGY', _('Radiology')
    OTHER = 'OTHER', _('Other')


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(AbstractBaseUser, PermissionsMixin, RetainedModel):
    """
    A member of facility staff. Every stock movement names the user who
    performed it, so accounts are soft-deleted, never removed.
    """

    class StatusChoices(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        ACTIVE = 'ACTIVE', _('Active')
        SUSPENDED = 'SUSPENDED', _('Suspended')

    email = models.EmailField(_('email'), unique=True)
    staff_number = models.CharField(
        _('staff number'), max_length=30, unique=True, null=True, blank=True,
    )
    phone = models.CharField(_('phone'), max_length=20, blank=True)
    first_name = models.CharField(_('first name'), max_length=100, blank=True)
    last_name = models.CharField(_('last name'), max_length=100, blank=True)
    department = models.CharField(
        _('department'), max_length=12,
        choices=Department.choices, default=Department.PHARMACY,
        db_index=True,
    )

    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices, default=StatusChoices.PENDING,
        db_index=True,
    )

    is_staff = models.BooleanField(_('staff status'), default=False)
    is_active = models.BooleanField(_('active'), default=True)
    date_joined = models.DateTimeField(_('date joined'), default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'is_deleted']),
            models.Index(fields=['department']),
        ]

    def __str__(self):
        return self.get_full_name()

    def get_full_name(self):
        full = f'{self.first_name} {self.last_name}'.strip()
        return full or self.email

    def get_short_name(self):
        return self.first_name or self.email

    @property
    def role_names(self) -> list[str]:
        return list(
            self.user_roles.filter(is_active=True)
            .values_list('role__name', flat=True)
        )

    def has_role(self, role_name: str) -> bool:
        return self.user_roles.filter(role__name=role_name, is_active=True).exists()

    def has_any_role(self, *role_names: str) -> bool:
        return self.user_roles.filter(role__name__in=role_names, is_active=True).exists()


# ---------------------------------------------------------------------------
# Role & UserRole (RBAC)
# ---------------------------------------------------------------------------

class Role(BaseModel):
    """Named role assigned to users through UserRole."""

    name = models.CharField(_('name'), max_length=60, unique=True)
    description = models.TextField(_('description'), blank=True)
    is_system = models.BooleanField(
        _('system role'), default=False,
        help_text=_('System roles cannot be deleted.'),
    )

    class Meta:
        verbose_name = _('role')
        verbose_name_plural = _('roles')
        ordering = ['name']

    def __str__(self):
        return self.name


class UserRole(BaseModel):
    """Associates a user with a role."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_roles',
        verbose_name=_('user'),
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
        verbose_name=_('role'),
    )
    is_active = models.BooleanField(_('active'), default=True)

    class Meta:
        verbose_name = _('user role')
        verbose_name_plural = _('user roles')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'role'],
                name='unique_user_role',
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        return f'{self.user} ← {self.role.name}'
