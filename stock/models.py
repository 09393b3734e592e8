"""
Stock — Models

Batch-based inventory with an insert-only movement ledger.

A Batch is one received lot of a medicine; its quantity_remaining is only
ever changed by the stock services through conditional UPDATEs. Every
change is mirrored by exactly one StockMovement, so the signed sum of a
batch's movements always equals its quantity_remaining.

@file stock/models.py
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


def default_location() -> str:
    return settings.STOCK_DEFAULT_LOCATION


class Batch(BaseModel):
    """
    One received lot: a quantity of a medicine sharing an expiry date and
    a unit cost. Never merged with another receipt, never hard-deleted
    once the ledger references it.
    """

    class StatusChoices(models.TextChoices):
        ACTIVE = 'ACTIVE', _('Active')
        DEPLETED = 'DEPLETED', _('Depleted')
        EXPIRED = 'EXPIRED', _('Expired')
        DAMAGED = 'DAMAGED', _('Damaged')

    medicine = models.ForeignKey(
        'medicines.Medicine',
        on_delete=models.PROTECT,
        related_name='batches',
        verbose_name=_('medicine'),
    )
    purchase_order = models.ForeignKey(
        'procurement.PurchaseOrder',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='batches',
        verbose_name=_('purchase order'),
    )
    batch_number = models.CharField(
        _('batch number'), max_length=100, db_index=True,
    )
    expiry_date = models.DateField(_('expiry date'), db_index=True)
    quantity_received = models.PositiveIntegerField(_('quantity received'))
    quantity_remaining = models.PositiveIntegerField(_('quantity remaining'))
    unit_cost = models.DecimalField(
        _('unit buying cost'), max_digits=12, decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    selling_price = models.DecimalField(
        _('unit selling price'), max_digits=12, decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text=_('Snapshot of the selling price at receipt.'),
    )
    location = models.CharField(
        _('storage location'), max_length=100, default=default_location,
    )
    status = models.CharField(
        _('status'), max_length=10,
        choices=StatusChoices.choices,
        default=StatusChoices.ACTIVE,
        db_index=True,
    )
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('received by'),
    )

    class Meta:
        verbose_name = _('batch')
        verbose_name_plural = _('batches')
        ordering = ['expiry_date', 'created_at']
        indexes = [
            models.Index(fields=['medicine', 'status', 'expiry_date'], name='batch_fifo_idx'),
            models.Index(fields=['status', 'expiry_date']),
            models.Index(fields=['location']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_received__gt=0),
                name='batch_received_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_remaining__lte=models.F('quantity_received')),
                name='batch_remaining_lte_received',
            ),
        ]

    def __str__(self):
        return f'Batch {self.batch_number} — {self.medicine} ({self.quantity_remaining}/{self.quantity_received})'

    @property
    def is_expired(self) -> bool:
        return self.expiry_date < timezone.now().date()

    @property
    def days_to_expiry(self) -> int:
        return (self.expiry_date - timezone.now().date()).days

    @property
    def is_eligible(self) -> bool:
        """Can this batch back an allocation right now?"""
        return (
            self.status == self.StatusChoices.ACTIVE
            and self.quantity_remaining > 0
            and not self.is_expired
        )

    def derive_status(self) -> str:
        """
        Status as a function of (quantity_remaining, expiry_date).
        DAMAGED is a terminal quarantine and is never derived away.
        """
        if self.status == self.StatusChoices.DAMAGED:
            return self.StatusChoices.DAMAGED
        if self.quantity_remaining == 0:
            return self.StatusChoices.DEPLETED
        if self.is_expired:
            return self.StatusChoices.EXPIRED
        return self.StatusChoices.ACTIVE

    def clean(self):
        super().clean()
        if self.quantity_received is not None and self.quantity_received <= 0:
            raise ValidationError({'quantity_received': _('Quantity received must be positive.')})
        if (
            self.quantity_remaining is not None
            and self.quantity_received is not None
            and self.quantity_remaining > self.quantity_received
        ):
            raise ValidationError({
                'quantity_remaining': _('Quantity remaining cannot exceed quantity received.'),
            })

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = Batch.objects.only('quantity_received').get(pk=self.pk)
            if original.quantity_received != self.quantity_received:
                raise ValidationError({'quantity_received': _('Quantity received is immutable.')})
        self.status = self.derive_status()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'status' not in update_fields:
            kwargs['update_fields'] = [*update_fields, 'status']
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.movements.exists():
            raise NotImplementedError('Batches referenced by the movement ledger cannot be deleted.')
        return super().delete(*args, **kwargs)


class StockMovement(models.Model):
    """
    A single immutable ledger entry (insert only).

    quantity is always a positive magnitude; direction says whether the
    movement added to or removed from the batch. IN is always an increase,
    OUT / DAMAGED / EXPIRED always a decrease, ADJUSTMENT either.
    """

    class MovementType(models.TextChoices):
        IN = 'IN', _('In')
        OUT = 'OUT', _('Out')
        ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')
        DAMAGED = 'DAMAGED', _('Damaged')
        EXPIRED = 'EXPIRED', _('Expired')

    class Direction(models.TextChoices):
        INCREASE = 'INCREASE', _('Increase')
        DECREASE = 'DECREASE', _('Decrease')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    medicine = models.ForeignKey(
        'medicines.Medicine',
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('medicine'),
    )
    batch = models.ForeignKey(
        Batch,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('batch'),
    )
    movement_type = models.CharField(
        _('movement type'), max_length=12,
        choices=MovementType.choices, db_index=True,
    )
    direction = models.CharField(
        _('direction'), max_length=8,
        choices=Direction.choices,
    )
    quantity = models.PositiveIntegerField(_('quantity'))
    reason = models.CharField(_('reason'), max_length=255, blank=True)
    reference_type = models.CharField(
        _('reference type'), max_length=100, blank=True,
        help_text=_('Model name of the source record: PurchaseOrder, Requisition, ...'),
    )
    reference_id = models.UUIDField(
        _('reference ID'), null=True, blank=True, db_index=True,
    )
    patient_reference = models.CharField(
        _('patient reference'), max_length=64, blank=True,
        help_text=_('Identifier of the patient in the clinical system, if any.'),
    )
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('performed by'),
    )
    created_at = models.DateTimeField(
        _('created at'), auto_now_add=True, db_index=True,
    )
    # No updated_at — immutable record.

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['medicine', 'created_at'], name='movement_medicine_idx'),
            models.Index(fields=['batch', 'created_at'], name='movement_batch_idx'),
            models.Index(fields=['performed_by', 'created_at'], name='movement_actor_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='movement_reference_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='movement_quantity_positive',
            ),
        ]

    def __str__(self):
        return f'{self.movement_type} {self.signed_quantity:+d} batch={self.batch_id} medicine={self.medicine_id}'

    @property
    def signed_quantity(self) -> int:
        if self.direction == self.Direction.DECREASE:
            return -self.quantity
        return self.quantity

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('StockMovement is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('StockMovement records cannot be deleted.')
