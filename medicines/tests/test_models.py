"""
Tests — Medicine model.

@file medicines/tests/test_models.py
"""

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from medicines.models import Medicine
from tests.factories import MedicineFactory


pytestmark = pytest.mark.django_db


class TestMedicine:

    def test_create_valid_medicine(self):
        med = MedicineFactory()
        assert med.pk is not None
        assert med.is_deleted is False

    def test_str(self):
        med = MedicineFactory(name='Amoxicillin', strength='250mg', dosage_form='CAPSULE')
        assert str(med) == 'Amoxicillin 250mg (Capsule)'

    def test_default_reorder_level_from_settings(self, settings):
        settings.STOCK_DEFAULT_REORDER_LEVEL = 25
        med = Medicine.objects.create(
            name='Ibuprofen', dosage_form='TABLET', strength='200mg', selling_price='1.00',
        )
        assert med.reorder_level == 25

    def test_clean_strips_name(self):
        med = MedicineFactory.build(name='  Paracetamol  ')
        med.full_clean()
        assert med.name == 'Paracetamol'

    def test_clean_rejects_blank_name(self):
        med = MedicineFactory.build(name='   ')
        with pytest.raises(ValidationError):
            med.full_clean()

    def test_unique_active_variant_constraint(self):
        MedicineFactory(name='Paracetamol', dosage_form='TABLET', strength='500mg')
        with pytest.raises(IntegrityError):
            MedicineFactory(name='Paracetamol', dosage_form='TABLET', strength='500mg')

    def test_soft_deleted_medicine_allows_duplicate(self):
        old = MedicineFactory(name='Paracetamol', dosage_form='TABLET', strength='500mg')
        old.soft_delete()
        new = MedicineFactory(name='Paracetamol', dosage_form='TABLET', strength='500mg')
        assert new.pk != old.pk

    def test_other_dosage_form_is_distinct(self):
        MedicineFactory(name='Paracetamol', dosage_form='TABLET', strength='500mg')
        syrup = MedicineFactory(name='Paracetamol', dosage_form='SYRUP', strength='500mg')
        assert syrup.pk is not None
