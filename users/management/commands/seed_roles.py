"""
Users — Management Command: seed_roles

Populates the Role table with the system roles used by the inventory
permission classes.

Usage::

    python manage.py seed_roles

Idempotent: safe to re-run (uses get_or_create).

@file users/management/commands/seed_roles.py
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from users.models import Role
from users.permissions import (
    ROLE_AUDITOR,
    ROLE_NURSE,
    ROLE_PHARMACIST,
    ROLE_STORE_ADMIN,
    ROLE_STORE_KEEPER,
)

SYSTEM_ROLES = [
    {'name': ROLE_STORE_ADMIN, 'description': 'Full inventory administrator'},
    {'name': ROLE_PHARMACIST, 'description': 'Dispenses to patients and sells over the counter'},
    {'name': ROLE_STORE_KEEPER, 'description': 'Receives stock, issues requisitions, runs stock counts'},
    {'name': ROLE_NURSE, 'description': 'Raises department requisitions'},
    {'name': ROLE_AUDITOR, 'description': 'Read-only access to the movement ledger'},
]


class Command(BaseCommand):
    help = 'Seed system-default RBAC roles.'

    @transaction.atomic
    def handle(self, *args, **options):
        created_count = 0
        for role_data in SYSTEM_ROLES:
            _, created = Role.objects.get_or_create(
                name=role_data['name'],
                defaults={
                    'description': role_data['description'],
                    'is_system': True,
                },
            )
            if created:
                created_count += 1
                self.stdout.write(f'  Created role: {role_data["name"]}')
            else:
                self.stdout.write(f'  Exists: {role_data["name"]}')

        self.stdout.write(self.style.SUCCESS(
            f'Done. {created_count} new roles created, {len(SYSTEM_ROLES) - created_count} already existed.'
        ))
