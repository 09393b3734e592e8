"""
Procurement — Service Layer

Purchase order lifecycle: create (PENDING), receive goods (PARTIAL, one new
batch per receipt), complete, cancel. Receipts go through
stock.services.ReceivingService so every batch gets its IN entry.

@file procurement/services.py
"""

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE, AUDIT_ACTION_UPDATE
from core.exceptions import (
    DuplicateResourceError,
    InvalidStateTransition,
    ResourceNotFoundError,
)
from core.services import AuditService
from stock.models import Batch
from stock.services import ReceivingService

from .models import PurchaseOrder

logger = logging.getLogger('medistock')

Status = PurchaseOrder.StatusChoices

ORDER_TRANSITIONS = {
    Status.PENDING: {Status.PARTIAL, Status.COMPLETED, Status.CANCELLED},
    Status.PARTIAL: {Status.PARTIAL, Status.COMPLETED},
    Status.COMPLETED: set(),
    Status.CANCELLED: set(),
}

EDITABLE_FIELDS = ('supplier_name', 'supplier_contact', 'supplier_email', 'supplier_phone', 'notes')


def _get_for_update(order_id) -> PurchaseOrder:
    try:
        return PurchaseOrder.objects.select_for_update().get(pk=order_id, is_deleted=False)
    except (PurchaseOrder.DoesNotExist, DjangoValidationError, ValueError):
        raise ResourceNotFoundError(detail='Purchase order not found.')


def _assert_transition(order: PurchaseOrder, new_status: str) -> None:
    allowed = ORDER_TRANSITIONS.get(order.status, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            detail=f'Cannot transition purchase order from {order.status} to {new_status}.',
        )


def _marked_up_price(unit_cost):
    try:
        cost = Decimal(str(unit_cost))
        return (cost * Decimal(str(settings.PROCUREMENT_DEFAULT_MARKUP))).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        # Left to ReceivingService to reject the cost itself.
        return None


class PurchaseOrderService:
    """Purchase order lifecycle and receipts."""

    @staticmethod
    @transaction.atomic
    def create_order(*, po_number: str, supplier_name: str, actor=None, **fields) -> PurchaseOrder:
        po_number = (po_number or '').strip().upper()
        if PurchaseOrder.objects.filter(po_number=po_number).exists():
            raise DuplicateResourceError(detail=f'Purchase order {po_number} already exists.')
        order = PurchaseOrder(
            po_number=po_number,
            supplier_name=supplier_name,
            created_by=actor,
            **{k: v for k, v in fields.items() if k in EDITABLE_FIELDS},
        )
        order.full_clean()
        order.save()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            new_values=AuditService.snapshot(order),
        )
        logger.info('Purchase order %s created by %s.', order.po_number, actor)
        return order

    @staticmethod
    @transaction.atomic
    def update_order(*, order_id, actor=None, **fields) -> PurchaseOrder:
        order = _get_for_update(order_id)
        if order.status != Status.PENDING:
            raise InvalidStateTransition(detail='Only PENDING purchase orders can be edited.')
        old_values = AuditService.snapshot(order, fields=list(EDITABLE_FIELDS))
        for field, value in fields.items():
            if field in EDITABLE_FIELDS:
                setattr(order, field, value)
        order.updated_by = actor
        order.full_clean()
        order.save()
        old_values, new_values = AuditService.changes(
            old_values, AuditService.snapshot(order, fields=list(EDITABLE_FIELDS)),
        )
        if new_values:
            AuditService.log(
                actor=actor,
                action=AUDIT_ACTION_UPDATE,
                model_name='PurchaseOrder',
                object_id=str(order.pk),
                old_values=old_values,
                new_values=new_values,
            )
        return order

    @staticmethod
    @transaction.atomic
    def receive_item(
        *,
        order_id,
        medicine_id,
        quantity,
        expiry_date,
        unit_cost,
        actor,
        batch_number: str = '',
        selling_price=None,
        location: str = '',
    ) -> Batch:
        """
        Receive one line of goods against an open order. Creates a new
        batch; the selling price defaults to unit cost times the
        configured markup.
        """
        order = _get_for_update(order_id)
        if not order.is_open:
            raise InvalidStateTransition(
                detail=f'Cannot receive goods against a {order.status} purchase order.',
            )
        if selling_price is None or selling_price == '':
            selling_price = _marked_up_price(unit_cost)

        batch = ReceivingService.receive(
            medicine_id=medicine_id,
            batch_number=batch_number,
            expiry_date=expiry_date,
            quantity=quantity,
            unit_cost=unit_cost,
            selling_price=selling_price,
            location=location,
            actor=actor,
            purchase_order=order,
        )

        old_status = order.status
        order.total_amount += batch.unit_cost * batch.quantity_received
        order.status = Status.PARTIAL
        order.updated_by = actor
        order.save(update_fields=['total_amount', 'status', 'updated_by', 'updated_at'])
        if old_status != order.status:
            AuditService.log(
                actor=actor,
                action=AUDIT_ACTION_STATUS_CHANGE,
                model_name='PurchaseOrder',
                object_id=str(order.pk),
                old_values={'status': old_status},
                new_values={'status': order.status},
            )
        logger.info(
            'PO %s: received %d unit(s) as batch %s.',
            order.po_number, batch.quantity_received, batch.batch_number,
        )
        return batch

    @staticmethod
    @transaction.atomic
    def complete_order(*, order_id, actor=None) -> PurchaseOrder:
        order = _get_for_update(order_id)
        _assert_transition(order, Status.COMPLETED)
        old_status = order.status
        order.status = Status.COMPLETED
        order.completed_at = timezone.now()
        order.updated_by = actor
        order.save(update_fields=['status', 'completed_at', 'updated_by', 'updated_at'])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            old_values={'status': old_status},
            new_values={'status': order.status},
        )
        logger.info('Purchase order %s completed.', order.po_number)
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(*, order_id, actor=None, reason: str = '') -> PurchaseOrder:
        order = _get_for_update(order_id)
        _assert_transition(order, Status.CANCELLED)
        if order.batches.exists():
            raise InvalidStateTransition(detail='Cannot cancel a purchase order that has received stock.')
        order.status = Status.CANCELLED
        if reason:
            order.notes = f'{order.notes}\nCancelled: {reason}'.strip()
        order.updated_by = actor
        order.save(update_fields=['status', 'notes', 'updated_by', 'updated_at'])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            old_values={'status': Status.PENDING},
            new_values={'status': Status.CANCELLED, 'reason': reason},
        )
        return order
