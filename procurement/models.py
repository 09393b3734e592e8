"""
Procurement — Models

Purchase orders placed with suppliers. Goods received against an order
become new stock batches linked back to it.

@file procurement/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import RetainedModel


class PurchaseOrder(RetainedModel):
    """
    Supplier order.

    State machine: PENDING → PARTIAL (first receipt) → COMPLETED, or
    PENDING → CANCELLED while nothing has been received.
    """

    class StatusChoices(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        PARTIAL = 'PARTIAL', _('Partially received')
        COMPLETED = 'COMPLETED', _('Completed')
        CANCELLED = 'CANCELLED', _('Cancelled')

    po_number = models.CharField(_('PO number'), max_length=50, unique=True)
    supplier_name = models.CharField(_('supplier name'), max_length=255)
    supplier_contact = models.CharField(_('supplier contact person'), max_length=255, blank=True)
    supplier_email = models.EmailField(_('supplier email'), blank=True)
    supplier_phone = models.CharField(_('supplier phone'), max_length=30, blank=True)
    total_amount = models.DecimalField(
        _('total amount'), max_digits=15, decimal_places=2, default=0,
        help_text=_('Sum of unit cost × quantity over received batches.'),
    )
    status = models.CharField(
        _('status'), max_length=10,
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        db_index=True,
    )
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('purchase order')
        verbose_name_plural = _('purchase orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'is_deleted']),
            models.Index(fields=['supplier_name']),
        ]

    def __str__(self):
        return f'PO {self.po_number} — {self.supplier_name} ({self.status})'

    @property
    def is_open(self) -> bool:
        return self.status in (self.StatusChoices.PENDING, self.StatusChoices.PARTIAL)
