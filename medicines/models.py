"""
Medicines — Models

The facility's medicine catalogue: one row per drug + dosage form +
strength combination. The stock engine reads it for identity, the
default selling price and the reorder threshold; it never writes it.

@file medicines/models.py
"""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import RetainedModel


def default_reorder_level() -> int:
    return settings.STOCK_DEFAULT_REORDER_LEVEL


class Medicine(RetainedModel):
    """A catalogued medicine. Stock is held in its batches, never here."""

    class DosageFormChoices(models.TextChoices):
        SYRUP = 'SYRUP', _('Syrup')
        INJECTION = 'INJECTION', _('Injection')
        CAPSULE = 'CAPSULE', _('Capsule')
        TABLET = 'TABLET', _('Tablet')
        CREAM = 'CREAM', _('Cream')
        DROPS = 'DROPS', _('Drops')
        INHALER = 'INHALER', _('Inhaler')
        OTHER = 'OTHER', _('Other')

    class CategoryChoices(models.TextChoices):
        ANTIBIOTIC = 'ANTIBIOTIC', _('Antibiotic')
        ANALGESIC = 'ANALGESIC', _('Analgesic')
        ANTIVIRAL = 'ANTIVIRAL', _('Antiviral')
        ANTIFUNGAL = 'ANTIFUNGAL', _('Antifungal')
        CARDIOVASCULAR = 'CARDIOVASCULAR', _('Cardiovascular')
        DIABETIC = 'DIABETIC', _('Diabetic')
        OTHER = 'OTHER', _('Other')

    name = models.CharField(_('name'), max_length=255)
    generic_name = models.CharField(_('generic name'), max_length=255, blank=True)
    dosage_form = models.CharField(
        _('dosage form'), max_length=12,
        choices=DosageFormChoices.choices,
    )
    strength = models.CharField(
        _('strength'), max_length=100, blank=True,
        help_text=_('e.g. 500mg, 10ml'),
    )
    manufacturer = models.CharField(_('manufacturer'), max_length=255, blank=True)
    category = models.CharField(
        _('category'), max_length=16,
        choices=CategoryChoices.choices,
        default=CategoryChoices.OTHER,
        db_index=True,
    )
    selling_price = models.DecimalField(
        _('selling price'), max_digits=12, decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text=_('Default unit price; each batch keeps its own snapshot.'),
    )
    reorder_level = models.PositiveIntegerField(
        _('reorder level'), default=default_reorder_level,
        help_text=_('Stock below this total is flagged as low.'),
    )
    description = models.TextField(_('description'), blank=True)

    class Meta:
        verbose_name = _('medicine')
        verbose_name_plural = _('medicines')
        ordering = ['name', 'strength']
        indexes = [
            models.Index(fields=['name']),
            models.Index(fields=['category', 'is_deleted']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['name', 'dosage_form', 'strength'],
                condition=models.Q(is_deleted=False),
                name='unique_active_medicine_variant',
            ),
        ]

    def __str__(self):
        label = f'{self.name} {self.strength}'.strip()
        return f'{label} ({self.get_dosage_form_display()})'

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': _('Name is required.')})
