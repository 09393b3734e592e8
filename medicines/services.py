"""
Medicines — Service Layer

Catalogue management. A medicine that has ever been stocked cannot be
removed, because its batches and ledger entries reference it.

@file medicines/services.py
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from core.exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    ResourceNotFoundError,
)

from .models import Medicine

logger = logging.getLogger('medistock')


def _get_for_update(medicine_id) -> Medicine:
    try:
        return Medicine.objects.select_for_update().get(pk=medicine_id, is_deleted=False)
    except Medicine.DoesNotExist:
        raise ResourceNotFoundError(detail='Medicine not found.')


def _assert_unique_variant(*, name, dosage_form, strength, exclude_pk=None) -> None:
    qs = Medicine.objects.filter(
        name__iexact=(name or '').strip(),
        dosage_form=dosage_form,
        strength=strength or '',
        is_deleted=False,
    )
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise DuplicateResourceError(
            detail=f'Medicine {name} {strength} ({dosage_form}) already exists.',
        )


class MedicineService:
    """Catalogue CRUD for Medicine."""

    @staticmethod
    def get_medicine(medicine_id) -> Medicine:
        try:
            return Medicine.objects.get(pk=medicine_id, is_deleted=False)
        except (Medicine.DoesNotExist, DjangoValidationError, ValueError):
            raise ResourceNotFoundError(detail='Medicine not found.')

    @staticmethod
    @transaction.atomic
    def create_medicine(*, actor=None, **fields) -> Medicine:
        _assert_unique_variant(
            name=fields.get('name'),
            dosage_form=fields.get('dosage_form'),
            strength=fields.get('strength', ''),
        )
        medicine = Medicine(**fields)
        medicine.full_clean()
        medicine.created_by = actor
        medicine._current_user = actor
        medicine.save()
        logger.info('Medicine %s created by %s.', medicine.pk, actor)
        return medicine

    @staticmethod
    @transaction.atomic
    def update_medicine(*, medicine_id, actor=None, **fields) -> Medicine:
        medicine = _get_for_update(medicine_id)

        for field, value in fields.items():
            if hasattr(medicine, field) and field not in ('id', 'pk'):
                setattr(medicine, field, value)

        _assert_unique_variant(
            name=medicine.name,
            dosage_form=medicine.dosage_form,
            strength=medicine.strength,
            exclude_pk=medicine.pk,
        )
        medicine.updated_by = actor
        medicine._current_user = actor
        medicine.full_clean()
        medicine.save()
        return medicine

    @staticmethod
    @transaction.atomic
    def delete_medicine(*, medicine_id, actor=None) -> Medicine:
        """Soft-delete a medicine that has never been stocked."""
        medicine = _get_for_update(medicine_id)
        if medicine.batches.exists():
            raise BusinessRuleViolation(
                detail='Cannot delete medicine with existing batches.',
            )
        medicine._current_user = actor
        medicine.soft_delete(user=actor)
        logger.info('Medicine %s soft-deleted by %s.', medicine.pk, actor)
        return medicine
