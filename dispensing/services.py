"""
Dispensing — Service Layer

Patient dispensing, direct sales and requisition issues. All three draw
stock through stock.services.Allocator (FIFO by expiry, best-effort) and
record what was actually allocated; a shortfall is reported, not raised.

Allocation always runs outside any enclosing transaction: each batch
deduction and its OUT entry commit as they happen, so the source record
is written before the allocation and brought up to date after it.

@file dispensing/services.py
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE
from core.exceptions import (
    DuplicateResourceError,
    InsufficientStockError,
    InvalidRequest,
    InvalidStateTransition,
    ResourceNotFoundError,
    StockValidationError,
)
from core.services import AuditService
from medicines.services import MedicineService
from stock.services import Allocator

from .models import DirectSale, DirectSaleItem, PatientDispensing, Requisition, RequisitionItem

logger = logging.getLogger('medistock')

ReqStatus = Requisition.StatusChoices
ItemStatus = RequisitionItem.StatusChoices

REQUISITION_NUMBER_ATTEMPTS = 5


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequest(detail='Quantity must be a positive integer.')
    return quantity


def _next_requisition_number() -> str:
    prefix = f'REQ-{timezone.now():%Y%m}-'
    last = (
        Requisition.objects
        .filter(requisition_number__startswith=prefix)
        .order_by('-requisition_number')
        .values_list('requisition_number', flat=True)
        .first()
    )
    seq = int(last.rsplit('-', 1)[1]) + 1 if last else 1
    return f'{prefix}{seq:05d}'


def _get_requisition_for_update(requisition_id) -> Requisition:
    try:
        return Requisition.objects.select_for_update().get(pk=requisition_id, is_deleted=False)
    except (Requisition.DoesNotExist, DjangoValidationError, ValueError):
        raise ResourceNotFoundError(detail='Requisition not found.')


def _get_item_for_update(requisition_id, item_id) -> RequisitionItem:
    try:
        return (
            RequisitionItem.objects
            .select_for_update()
            .select_related('medicine')
            .get(pk=item_id, requisition_id=requisition_id)
        )
    except (RequisitionItem.DoesNotExist, DjangoValidationError, ValueError):
        raise ResourceNotFoundError(detail='Requisition item not found.')


def _refresh_requisition_status(requisition: Requisition, actor) -> None:
    """Derive the requisition status from its items."""
    statuses = set(requisition.items.values_list('status', flat=True))
    if statuses and statuses <= {ItemStatus.ISSUED, ItemStatus.REJECTED}:
        new_status = ReqStatus.COMPLETED
    elif statuses - {ItemStatus.PENDING}:
        new_status = ReqStatus.IN_PROGRESS
    else:
        new_status = ReqStatus.SUBMITTED

    if new_status == requisition.status:
        return
    old_status = requisition.status
    requisition.status = new_status
    requisition.updated_by = actor
    requisition.save(update_fields=['status', 'updated_by', 'updated_at'])
    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_STATUS_CHANGE,
        model_name='Requisition',
        object_id=str(requisition.pk),
        old_values={'status': old_status},
        new_values={'status': new_status},
    )


# ---------------------------------------------------------------------------
# Patient dispensing & direct sales
# ---------------------------------------------------------------------------

class DispensingService:

    @staticmethod
    def dispense_to_patient(
        *,
        patient_reference: str,
        medicine_id,
        quantity: int,
        actor,
        prescription_reference: str = '',
        notes: str = '',
    ) -> PatientDispensing:
        """
        Dispense a prescription line. The record is written first so the
        OUT entries can reference it, then updated with what was found.
        """
        patient_reference = (patient_reference or '').strip()
        if not patient_reference:
            raise InvalidRequest(detail='A patient reference is required.')
        quantity = _validate_quantity(quantity)
        if actor is None:
            raise InvalidRequest(detail='Dispensing must name the actor performing it.')
        medicine = MedicineService.get_medicine(medicine_id)

        record = PatientDispensing.objects.create(
            patient_reference=patient_reference,
            medicine=medicine,
            quantity_requested=quantity,
            prescription_reference=prescription_reference,
            issued_by=actor,
            notes=notes,
            created_by=actor,
        )
        result = Allocator.allocate(
            medicine_id=medicine.pk,
            quantity=quantity,
            reason=f'Prescription dispensing (Rx: {prescription_reference or "n/a"})',
            actor=actor,
            reference_type='PatientDispensing',
            reference_id=record.pk,
            patient_reference=patient_reference,
        )

        record.quantity_dispensed = result.allocated
        if result.is_complete:
            record.status = PatientDispensing.StatusChoices.DISPENSED
        elif result.allocated:
            record.status = PatientDispensing.StatusChoices.PARTIAL
        else:
            record.status = PatientDispensing.StatusChoices.NOT_DISPENSED
        record.save(update_fields=['quantity_dispensed', 'status', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='PatientDispensing',
            object_id=str(record.pk),
            new_values={
                'medicine_id': str(medicine.pk),
                'patient_reference': patient_reference,
                'quantity_requested': quantity,
                'quantity_dispensed': result.allocated,
            },
        )
        return record

    @staticmethod
    def direct_sale(*, client_name: str, items: list[dict], actor) -> DirectSale:
        """
        Sell to a walk-in client. items: [{'medicine_id': ..., 'quantity': ...}].
        Line totals use each allocated batch's snapshot selling price.
        """
        client_name = (client_name or '').strip()
        if not client_name:
            raise InvalidRequest(detail='A client name is required.')
        if not items:
            raise StockValidationError(detail='At least one item is required.')
        if actor is None:
            raise InvalidRequest(detail='A sale must name the actor performing it.')
        lines = [
            (MedicineService.get_medicine(row['medicine_id']), _validate_quantity(row['quantity']))
            for row in items
        ]

        sale = DirectSale.objects.create(client_name=client_name, sold_by=actor, created_by=actor)
        total = Decimal('0')
        for medicine, quantity in lines:
            result = Allocator.allocate(
                medicine_id=medicine.pk,
                quantity=quantity,
                reason=f'Direct dispensing to {client_name}',
                actor=actor,
                reference_type='DirectSale',
                reference_id=sale.pk,
            )
            line_total = sum(
                (a.batch.selling_price * a.quantity for a in result.allocations),
                Decimal('0'),
            )
            if result.allocated:
                unit_price = (line_total / result.allocated).quantize(Decimal('0.01'))
            else:
                unit_price = medicine.selling_price
            DirectSaleItem.objects.create(
                sale=sale,
                medicine=medicine,
                quantity_requested=quantity,
                quantity_sold=result.allocated,
                unit_price=unit_price,
                line_total=line_total,
                created_by=actor,
            )
            total += line_total

        sale.total_cost = total
        sale.save(update_fields=['total_cost', 'updated_at'])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='DirectSale',
            object_id=str(sale.pk),
            new_values={'client_name': client_name, 'total_cost': str(total)},
        )
        logger.info('Direct sale %s to %s: total %s.', sale.pk, client_name, total)
        return sale


# ---------------------------------------------------------------------------
# Requisitions
# ---------------------------------------------------------------------------

class RequisitionService:

    @staticmethod
    @transaction.atomic
    def create_requisition(
        *,
        department: str,
        items: list[dict],
        actor,
        location: str = '',
        priority: str = Requisition.PriorityChoices.NORMAL,
        notes: str = '',
    ) -> Requisition:
        if not items:
            raise StockValidationError(detail='At least one item is required.')
        lines = [
            (MedicineService.get_medicine(row['medicine_id']), _validate_quantity(row['quantity']))
            for row in items
        ]
        requisition = Requisition(
            department=department,
            location=location,
            priority=priority,
            notes=notes,
            requested_by=actor,
            created_by=actor,
        )
        try:
            requisition.full_clean(exclude=['requisition_number'])
        except DjangoValidationError as exc:
            raise StockValidationError(detail=exc.message_dict)

        # Two submissions can read the same last number; the loser retries.
        for attempt in range(1, REQUISITION_NUMBER_ATTEMPTS + 1):
            requisition.requisition_number = _next_requisition_number()
            try:
                with transaction.atomic():
                    requisition.save(force_insert=True)
                break
            except IntegrityError:
                logger.info(
                    'Requisition number %s taken (attempt %d/%d).',
                    requisition.requisition_number, attempt, REQUISITION_NUMBER_ATTEMPTS,
                )
        else:
            raise DuplicateResourceError(detail='Could not assign a requisition number; try again.')

        RequisitionItem.objects.bulk_create([
            RequisitionItem(
                requisition=requisition,
                medicine=medicine,
                requested_quantity=quantity,
                created_by=actor,
            )
            for medicine, quantity in lines
        ])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Requisition',
            object_id=str(requisition.pk),
            new_values={
                'requisition_number': requisition.requisition_number,
                'department': department,
                'items': len(lines),
            },
        )
        logger.info('Requisition %s submitted by %s.', requisition.requisition_number, actor)
        return requisition

    @staticmethod
    def issue_item(
        *,
        requisition_id,
        item_id,
        actor,
        quantity: int | None = None,
        allow_partial: bool = True,
    ) -> RequisitionItem:
        """
        Issue an item's outstanding quantity (or part of it) from FIFO stock.

        The quantity is reserved on the item under lock, allocated with
        no lock held, then settled onto the item. With allow_partial=False
        the issue is refused up front unless eligible stock covers the
        whole quantity; if stock drains before the allocation lands, the
        units that were taken are still recorded on the item and
        InsufficientStockError is raised.
        """
        requisition, item, quantity = RequisitionService._reserve(
            requisition_id, item_id, quantity, allow_partial,
        )
        try:
            result = Allocator.allocate(
                medicine_id=item.medicine_id,
                quantity=quantity,
                reason=f'Issued via requisition {requisition.requisition_number}',
                actor=actor,
                reference_type='Requisition',
                reference_id=requisition.pk,
            )
        except Exception:
            RequisitionService._release(item.pk, quantity)
            raise

        item = RequisitionService._settle(item.pk, quantity, result.allocated, actor)
        if result.allocated:
            RequisitionService._mark_issued(requisition.pk, actor)

        if not result.allocated:
            raise InsufficientStockError(detail=f'No eligible stock of {item.medicine} to issue.')
        if result.shortfall and not allow_partial:
            raise InsufficientStockError(
                detail=(
                    f'Only {result.allocated} of {quantity} unit(s) of {item.medicine} could be issued; '
                    f'the issued units are recorded on the item.'
                ),
            )
        return item

    @staticmethod
    @transaction.atomic
    def _reserve(requisition_id, item_id, quantity, allow_partial):
        requisition = _get_requisition_for_update(requisition_id)
        if not requisition.is_open:
            raise InvalidStateTransition(detail=f'Requisition is {requisition.status}.')
        item = _get_item_for_update(requisition.pk, item_id)
        if item.status not in (ItemStatus.PENDING, ItemStatus.PARTIAL):
            raise InvalidStateTransition(detail=f'Item is already {item.status}.')

        outstanding = item.outstanding
        if outstanding == 0:
            raise InvalidStateTransition(detail='The outstanding quantity is already being issued.')
        quantity = outstanding if quantity is None else _validate_quantity(quantity)
        if quantity > outstanding:
            raise StockValidationError(
                detail=f'Only {outstanding} unit(s) remain outstanding on this item.',
            )
        if not allow_partial:
            available = Allocator.available(item.medicine_id)
            if available < quantity:
                raise InsufficientStockError(
                    detail=f'Only {available} unit(s) of {item.medicine} available; {quantity} requested.',
                )

        item.reserved_quantity += quantity
        item.save(update_fields=['reserved_quantity', 'updated_at'])
        return requisition, item, quantity

    @staticmethod
    @transaction.atomic
    def _release(item_id, quantity: int) -> None:
        item = RequisitionItem.objects.select_for_update().get(pk=item_id)
        item.reserved_quantity -= quantity
        item.save(update_fields=['reserved_quantity', 'updated_at'])

    @staticmethod
    @transaction.atomic
    def _settle(item_id, reserved: int, allocated: int, actor) -> RequisitionItem:
        """Swap a reservation for what the allocator actually issued."""
        item = RequisitionItem.objects.select_for_update().select_related('medicine').get(pk=item_id)
        item.reserved_quantity -= reserved
        item.issued_quantity += allocated
        if item.issued_quantity == item.requested_quantity:
            item.status = ItemStatus.ISSUED
        elif item.issued_quantity:
            item.status = ItemStatus.PARTIAL
        item.updated_by = actor
        item.save(update_fields=['reserved_quantity', 'issued_quantity', 'status', 'updated_by', 'updated_at'])
        return item

    @staticmethod
    @transaction.atomic
    def _mark_issued(requisition_id, actor) -> None:
        requisition = Requisition.objects.select_for_update().get(pk=requisition_id)
        requisition.issued_by = actor
        requisition.issued_at = timezone.now()
        requisition.save(update_fields=['issued_by', 'issued_at', 'updated_at'])
        _refresh_requisition_status(requisition, actor)

    @staticmethod
    @transaction.atomic
    def reject_item(*, requisition_id, item_id, actor, remarks: str) -> RequisitionItem:
        """Close an item without (further) issue. Stock already issued stays issued."""
        remarks = (remarks or '').strip()
        if not remarks:
            raise StockValidationError(detail='Rejecting an item requires remarks.')
        requisition = _get_requisition_for_update(requisition_id)
        if not requisition.is_open:
            raise InvalidStateTransition(detail=f'Requisition is {requisition.status}.')
        item = _get_item_for_update(requisition.pk, item_id)
        if item.status not in (ItemStatus.PENDING, ItemStatus.PARTIAL):
            raise InvalidStateTransition(detail=f'Item is already {item.status}.')
        if item.reserved_quantity:
            raise InvalidStateTransition(detail='An issue is in progress for this item.')

        item.status = ItemStatus.REJECTED
        item.remarks = remarks
        item.updated_by = actor
        item.save(update_fields=['status', 'remarks', 'updated_by', 'updated_at'])
        _refresh_requisition_status(requisition, actor)
        return item

    @staticmethod
    @transaction.atomic
    def cancel_requisition(*, requisition_id, actor, reason: str = '') -> Requisition:
        requisition = _get_requisition_for_update(requisition_id)
        if not requisition.is_open:
            raise InvalidStateTransition(detail=f'Cannot cancel a {requisition.status} requisition.')
        if requisition.items.filter(Q(issued_quantity__gt=0) | Q(reserved_quantity__gt=0)).exists():
            raise InvalidStateTransition(detail='Cannot cancel a requisition with issued stock.')
        old_status = requisition.status
        requisition.status = ReqStatus.CANCELLED
        if reason:
            requisition.notes = f'{requisition.notes}\nCancelled: {reason}'.strip()
        requisition.updated_by = actor
        requisition.save(update_fields=['status', 'notes', 'updated_by', 'updated_at'])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name='Requisition',
            object_id=str(requisition.pk),
            old_values={'status': old_status},
            new_values={'status': ReqStatus.CANCELLED, 'reason': reason},
        )
        return requisition
