"""
Dispensing — Models

The three ways stock leaves the store: dispensing to a patient against a
prescription, direct sale to a walk-in client, and issue to a ward or
department through a requisition. Each draws its stock through the FIFO
allocator and records what was actually allocated.

@file dispensing/models.py
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, RetainedModel
from users.models import Department


# ---------------------------------------------------------------------------
# Patient dispensing
# ---------------------------------------------------------------------------

class PatientDispensing(BaseModel):
    """One prescription line dispensed to a patient."""

    class StatusChoices(models.TextChoices):
        DISPENSED = 'DISPENSED', _('Dispensed')
        PARTIAL = 'PARTIAL', _('Partially dispensed')
        NOT_DISPENSED = 'NOT_DISPENSED', _('Not dispensed')

    patient_reference = models.CharField(
        _('patient reference'), max_length=64, db_index=True,
        help_text=_('Identifier of the patient in the clinical system.'),
    )
    medicine = models.ForeignKey(
        'medicines.Medicine',
        on_delete=models.PROTECT,
        related_name='patient_dispensings',
        verbose_name=_('medicine'),
    )
    quantity_requested = models.PositiveIntegerField(_('quantity requested'))
    quantity_dispensed = models.PositiveIntegerField(_('quantity dispensed'), default=0)
    prescription_reference = models.CharField(_('prescription reference'), max_length=100, blank=True)
    status = models.CharField(
        _('status'), max_length=14,
        choices=StatusChoices.choices,
        default=StatusChoices.NOT_DISPENSED,
        db_index=True,
    )
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_dispensings',
        verbose_name=_('issued by'),
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('patient dispensing')
        verbose_name_plural = _('patient dispensings')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.medicine} ×{self.quantity_dispensed}/{self.quantity_requested} → {self.patient_reference}'

    @property
    def shortfall(self) -> int:
        return self.quantity_requested - self.quantity_dispensed


# ---------------------------------------------------------------------------
# Direct sale
# ---------------------------------------------------------------------------

class DirectSale(BaseModel):
    """Over-the-counter sale to a walk-in client."""

    client_name = models.CharField(_('client name'), max_length=255)
    total_cost = models.DecimalField(_('total cost'), max_digits=15, decimal_places=2, default=0)
    sold_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='direct_sales',
        verbose_name=_('sold by'),
    )

    class Meta:
        verbose_name = _('direct sale')
        verbose_name_plural = _('direct sales')
        ordering = ['-created_at']

    def __str__(self):
        return f'Sale to {self.client_name} ({self.total_cost})'


class DirectSaleItem(BaseModel):
    sale = models.ForeignKey(
        DirectSale,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('sale'),
    )
    medicine = models.ForeignKey(
        'medicines.Medicine',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('medicine'),
    )
    quantity_requested = models.PositiveIntegerField(_('quantity requested'))
    quantity_sold = models.PositiveIntegerField(_('quantity sold'), default=0)
    unit_price = models.DecimalField(_('unit price'), max_digits=12, decimal_places=2)
    line_total = models.DecimalField(_('line total'), max_digits=15, decimal_places=2, default=0)

    class Meta:
        verbose_name = _('direct sale item')
        verbose_name_plural = _('direct sale items')
        ordering = ['created_at']

    def __str__(self):
        return f'{self.medicine} ×{self.quantity_sold}'


# ---------------------------------------------------------------------------
# Requisitions
# ---------------------------------------------------------------------------

class Requisition(RetainedModel):
    """
    A department's request for stock from the store.

    SUBMITTED → IN_PROGRESS (first item processed) → COMPLETED (every item
    issued or rejected). SUBMITTED / IN_PROGRESS → CANCELLED.
    """

    class StatusChoices(models.TextChoices):
        SUBMITTED = 'SUBMITTED', _('Submitted')
        IN_PROGRESS = 'IN_PROGRESS', _('In progress')
        COMPLETED = 'COMPLETED', _('Completed')
        CANCELLED = 'CANCELLED', _('Cancelled')

    class PriorityChoices(models.TextChoices):
        LOW = 'LOW', _('Low')
        NORMAL = 'NORMAL', _('Normal')
        URGENT = 'URGENT', _('Urgent')

    requisition_number = models.CharField(_('requisition number'), max_length=20, unique=True)
    department = models.CharField(
        _('department'), max_length=12,
        choices=Department.choices, db_index=True,
    )
    location = models.CharField(_('delivery location'), max_length=100, blank=True)
    priority = models.CharField(
        _('priority'), max_length=6,
        choices=PriorityChoices.choices, default=PriorityChoices.NORMAL,
    )
    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices, default=StatusChoices.SUBMITTED,
        db_index=True,
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='requisitions',
        verbose_name=_('requested by'),
    )
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('issued by'),
    )
    issued_at = models.DateTimeField(_('issued at'), null=True, blank=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('requisition')
        verbose_name_plural = _('requisitions')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['department', 'status']),
        ]

    def __str__(self):
        return f'{self.requisition_number} — {self.get_department_display()} ({self.status})'

    @property
    def is_open(self) -> bool:
        return self.status in (self.StatusChoices.SUBMITTED, self.StatusChoices.IN_PROGRESS)


class RequisitionItem(BaseModel):

    class StatusChoices(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        ISSUED = 'ISSUED', _('Issued')
        PARTIAL = 'PARTIAL', _('Partially issued')
        REJECTED = 'REJECTED', _('Rejected')

    requisition = models.ForeignKey(
        Requisition,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('requisition'),
    )
    medicine = models.ForeignKey(
        'medicines.Medicine',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('medicine'),
    )
    requested_quantity = models.PositiveIntegerField(_('requested quantity'))
    issued_quantity = models.PositiveIntegerField(_('issued quantity'), default=0)
    # Units claimed by an issue whose allocation has not been settled yet.
    reserved_quantity = models.PositiveIntegerField(_('reserved quantity'), default=0)
    status = models.CharField(
        _('status'), max_length=10,
        choices=StatusChoices.choices, default=StatusChoices.PENDING,
    )
    remarks = models.CharField(_('remarks'), max_length=255, blank=True)

    class Meta:
        verbose_name = _('requisition item')
        verbose_name_plural = _('requisition items')
        ordering = ['created_at']

    def __str__(self):
        return f'{self.medicine} {self.issued_quantity}/{self.requested_quantity} ({self.status})'

    @property
    def outstanding(self) -> int:
        if self.status == self.StatusChoices.REJECTED:
            return 0
        return self.requested_quantity - self.issued_quantity - self.reserved_quantity
