"""
Stock — Service Layer

The inventory engine: BatchStore (eligible batches, conditional
decrement/increment), MovementLedger (append-only entries), Allocator
(FIFO-by-expiry allocation with partial fulfilment), Reconciler (physical
count adjustments), ReceivingService (new batches), WriteOffService
(damaged / expired stock) and StockQueryService (balances and count sheets).

Every change to Batch.quantity_remaining is a single conditional UPDATE
paired with exactly one StockMovement. StockMovement is INSERT ONLY.

@file stock/services.py
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from itertools import groupby
from typing import Any
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connection, models, transaction
from django.db.models import Case, Count, F, IntegerField, Min, Q, Sum, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.dateparse import parse_date

from core.constants import AUDIT_ACTION_ADJUSTMENT, AUDIT_ACTION_CREATE
from core.exceptions import (
    InsufficientBatchQuantity,
    InvalidRequest,
    NoBatchToAdjust,
    ReconciliationConflict,
    ResourceNotFoundError,
    StockValidationError,
    SurplusExceedsBatch,
)
from core.services import AuditService
from medicines.models import Medicine

from .models import Batch, StockMovement

logger = logging.getLogger('medistock')

MovementType = StockMovement.MovementType
Direction = StockMovement.Direction
BatchStatus = Batch.StatusChoices

DECREASING_TYPES = {MovementType.OUT, MovementType.DAMAGED, MovementType.EXPIRED}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _today() -> date:
    return timezone.now().date()


def _advisory_lock_key(*parts) -> int:
    """Stable bigint key for a PostgreSQL advisory lock (same parts = same key)."""
    raw = ':'.join(str(p) for p in parts).encode()
    h = hashlib.sha256(raw).digest()[:8]
    return int.from_bytes(h, 'big') % (2**63)


def _lock_medicine(medicine_id) -> None:
    """Serialize reconciliations of one medicine for the rest of the transaction."""
    if connection.vendor == 'postgresql':
        with connection.cursor() as cursor:
            cursor.execute('SELECT pg_advisory_xact_lock(%s)', [_advisory_lock_key('reconcile', medicine_id)])


def _get_medicine(medicine_id) -> Medicine:
    try:
        return Medicine.objects.get(pk=medicine_id, is_deleted=False)
    except (Medicine.DoesNotExist, DjangoValidationError, ValueError):
        raise ResourceNotFoundError(detail='Medicine not found.')


def _to_int(value, *, field_name: str) -> int:
    if isinstance(value, bool) or value is None or value == '':
        raise StockValidationError(detail=f'{field_name} must be an integer.')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise StockValidationError(detail=f'{field_name} must be an integer.')
    if isinstance(value, (float, Decimal)) and number != value:
        raise StockValidationError(detail=f'{field_name} must be a whole number.')
    return number


def _to_positive_int(value, *, field_name: str) -> int:
    number = _to_int(value, field_name=field_name)
    if number <= 0:
        raise StockValidationError(detail=f'{field_name} must be greater than zero.')
    return number


def _to_price(value, *, field_name: str) -> Decimal:
    if value is None or value == '':
        raise StockValidationError(detail=f'{field_name} is required.')
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise StockValidationError(detail=f'{field_name} must be a valid decimal.')
    if not price.is_finite() or price < 0:
        raise StockValidationError(detail=f'{field_name} cannot be negative.')
    return price


def _to_date(value, *, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise StockValidationError(detail=f'{field_name} must be a valid date (YYYY-MM-DD).')


def _eligible_q(prefix: str = '') -> Q:
    return Q(**{
        f'{prefix}status': BatchStatus.ACTIVE,
        f'{prefix}quantity_remaining__gt': 0,
        f'{prefix}expiry_date__gte': _today(),
    })


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AllocationRequest:
    medicine_id: UUID
    quantity: int
    reason: str
    actor: Any
    reference_type: str = ''
    reference_id: UUID | None = None
    patient_reference: str = ''


@dataclass(frozen=True)
class BatchAllocation:
    batch: Batch
    quantity: int
    movement: StockMovement


@dataclass
class AllocationResult:
    medicine_id: UUID
    requested: int
    allocations: list[BatchAllocation] = field(default_factory=list)

    @property
    def allocated(self) -> int:
        return sum(a.quantity for a in self.allocations)

    @property
    def shortfall(self) -> int:
        return self.requested - self.allocated

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0

    @property
    def is_partial(self) -> bool:
        return 0 < self.allocated < self.requested


@dataclass(frozen=True)
class ReconciliationResult:
    medicine_id: UUID
    actual_count: int
    recorded_total: int
    difference: int
    adjusted_batch: Batch | None = None
    movement: StockMovement | None = None
    applied: int = 0

    @property
    def unapplied(self) -> int:
        """Signed part of the difference that clamping kept off the batch."""
        return self.difference - self.applied


# ---------------------------------------------------------------------------
# Batch Store
# ---------------------------------------------------------------------------

class BatchStore:
    """Reads eligible batches and applies atomic conditional quantity changes."""

    @staticmethod
    def get(batch_id) -> Batch:
        try:
            return Batch.objects.select_related('medicine').get(pk=batch_id)
        except (Batch.DoesNotExist, DjangoValidationError, ValueError):
            raise ResourceNotFoundError(detail='Batch not found.')

    @staticmethod
    def expire_overdue(medicine_id=None) -> int:
        """Flip ACTIVE batches past their expiry date to EXPIRED. Returns the count."""
        qs = Batch.objects.filter(
            status=BatchStatus.ACTIVE,
            quantity_remaining__gt=0,
            expiry_date__lt=_today(),
        )
        if medicine_id is not None:
            qs = qs.filter(medicine_id=medicine_id)
        count = qs.update(status=BatchStatus.EXPIRED, updated_at=timezone.now())
        if count:
            logger.info('Marked %d batch(es) expired (medicine=%s).', count, medicine_id or 'all')
        return count

    @staticmethod
    def eligible():
        """All batches that can back an allocation, FIFO-ordered."""
        return (
            Batch.objects
            .filter(_eligible_q())
            .order_by('expiry_date', 'created_at', 'id')
        )

    @staticmethod
    def list_eligible(medicine_id):
        """
        ACTIVE, unexpired, non-empty batches of a medicine, soonest expiry
        first, then oldest receipt. The QuerySet is lazy and re-queries the
        database each time it is evaluated.
        """
        BatchStore.expire_overdue(medicine_id)
        return BatchStore.eligible().filter(medicine_id=medicine_id)

    @staticmethod
    def deduct(batch_id, amount: int, *, statuses=(BatchStatus.ACTIVE,)) -> None:
        """
        Decrement quantity_remaining by amount in one conditional UPDATE.
        The row only matches while it still holds at least amount, so two
        concurrent deductions can never drive it negative. Reaching zero
        marks the batch DEPLETED in the same statement.
        """
        if amount <= 0:
            raise StockValidationError(detail='Deduction amount must be greater than zero.')
        updated = (
            Batch.objects
            .filter(pk=batch_id, status__in=statuses, quantity_remaining__gte=amount)
            .update(
                quantity_remaining=F('quantity_remaining') - amount,
                status=Case(
                    When(quantity_remaining=amount, then=Value(BatchStatus.DEPLETED)),
                    default=F('status'),
                    output_field=models.CharField(),
                ),
                updated_at=timezone.now(),
            )
        )
        if not updated:
            raise InsufficientBatchQuantity(
                detail=f'Batch {batch_id} does not hold {amount} unit(s).',
            )

    @staticmethod
    def increment(batch_id, amount: int, *, expected: int | None = None) -> bool:
        """
        Increase quantity_remaining by amount, never beyond
        quantity_received. A DEPLETED batch comes back as ACTIVE (or
        EXPIRED when past its date). Only the reconciler adds stock to an
        existing batch; receiving always creates a new one.

        With expected, the UPDATE also requires quantity_remaining to
        still equal it and returns False when another writer got there
        first instead of raising.
        """
        if amount <= 0:
            raise StockValidationError(detail='Increment amount must be greater than zero.')
        qs = Batch.objects.filter(pk=batch_id, quantity_remaining__lte=F('quantity_received') - amount)
        if expected is not None:
            qs = qs.filter(quantity_remaining=expected)
        updated = (
            qs
            .exclude(status=BatchStatus.DAMAGED)
            .update(
                quantity_remaining=F('quantity_remaining') + amount,
                status=Case(
                    When(status=BatchStatus.DEPLETED, expiry_date__lt=_today(), then=Value(BatchStatus.EXPIRED)),
                    When(status=BatchStatus.DEPLETED, then=Value(BatchStatus.ACTIVE)),
                    default=F('status'),
                    output_field=models.CharField(),
                ),
                updated_at=timezone.now(),
            )
        )
        if updated:
            return True
        if expected is not None:
            return False
        raise StockValidationError(
            detail=f'Batch {batch_id} cannot take {amount} more unit(s) than it received.',
        )

    @staticmethod
    def compare_and_set(batch: Batch, *, expected: int, new: int) -> bool:
        """
        Set quantity_remaining to new only if it still equals expected.
        Returns False when another writer changed the batch first.
        """
        if new < 0 or new > batch.quantity_received:
            raise StockValidationError(detail='Quantity remaining must stay within [0, quantity received].')
        if new == 0:
            status = BatchStatus.DEPLETED
        elif batch.expiry_date < _today():
            status = BatchStatus.EXPIRED
        else:
            status = BatchStatus.ACTIVE
        updated = (
            Batch.objects
            .filter(pk=batch.pk, quantity_remaining=expected)
            .exclude(status=BatchStatus.DAMAGED)
            .update(quantity_remaining=new, status=status, updated_at=timezone.now())
        )
        return bool(updated)


# ---------------------------------------------------------------------------
# Movement Ledger
# ---------------------------------------------------------------------------

class MovementLedger:
    """Append-only ledger of every quantity change."""

    @staticmethod
    @transaction.atomic
    def record(
        *,
        medicine_id,
        movement_type: str,
        quantity: int,
        actor,
        batch_id=None,
        direction: str | None = None,
        reason: str = '',
        reference_type: str = '',
        reference_id: UUID | None = None,
        patient_reference: str = '',
    ) -> StockMovement:
        """Persist one immutable entry. Validates before writing anything."""
        if movement_type not in MovementType.values:
            raise StockValidationError(detail=f'Invalid movement_type: {movement_type}')
        quantity = _to_positive_int(quantity, field_name='quantity')
        if actor is None:
            raise StockValidationError(detail='Every stock movement must name the actor who performed it.')
        reason = (reason or '').strip()

        if movement_type == MovementType.ADJUSTMENT:
            if not reason:
                raise StockValidationError(detail='An ADJUSTMENT must carry a reason.')
            if direction not in Direction.values:
                raise StockValidationError(detail='An ADJUSTMENT must state its direction.')
        else:
            if batch_id is None:
                raise StockValidationError(detail=f'A {movement_type} movement must reference a batch.')
            implied = Direction.DECREASE if movement_type in DECREASING_TYPES else Direction.INCREASE
            if direction is not None and direction != implied:
                raise StockValidationError(
                    detail=f'A {movement_type} movement is always a {implied.lower()}.',
                )
            direction = implied

        movement = StockMovement(
            medicine_id=medicine_id,
            batch_id=batch_id,
            movement_type=movement_type,
            direction=direction,
            quantity=quantity,
            reason=reason,
            reference_type=reference_type or '',
            reference_id=reference_id,
            patient_reference=patient_reference or '',
            performed_by=actor,
        )
        movement.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='StockMovement',
            object_id=str(movement.pk),
            new_values={
                'medicine_id': str(medicine_id),
                'batch_id': str(batch_id) if batch_id else None,
                'movement_type': movement_type,
                'direction': direction,
                'quantity': quantity,
                'reason': reason,
            },
        )
        logger.info(
            'StockMovement %s %s %s qty=%s medicine=%s batch=%s',
            movement_type, direction, movement.pk, quantity, medicine_id, batch_id,
        )
        return movement

    @staticmethod
    def history(
        *,
        medicine_id=None,
        movement_type: str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        actor_id=None,
        batch_id=None,
        reference_id=None,
        reference_type: str | None = None,
        direction: str | None = None,
    ):
        """Entries matching every given filter, newest first. Read-only, lazy."""
        qs = StockMovement.objects.select_related('medicine', 'batch', 'performed_by')
        if medicine_id is not None:
            qs = qs.filter(medicine_id=medicine_id)
        if movement_type:
            qs = qs.filter(movement_type=movement_type)
        if actor_id is not None:
            qs = qs.filter(performed_by_id=actor_id)
        if batch_id is not None:
            qs = qs.filter(batch_id=batch_id)
        if reference_id is not None:
            qs = qs.filter(reference_id=reference_id)
        if reference_type:
            qs = qs.filter(reference_type=reference_type)
        if direction:
            qs = qs.filter(direction=direction)
        if start is not None:
            qs = qs.filter(created_at__gte=start) if isinstance(start, datetime) else qs.filter(created_at__date__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lte=end) if isinstance(end, datetime) else qs.filter(created_at__date__lte=end)
        return qs.order_by('-created_at')

    @staticmethod
    def signed_total(batch_id) -> int:
        """Sum of signed quantities recorded against a batch."""
        result = StockMovement.objects.filter(batch_id=batch_id).aggregate(
            in_sum=Sum(Case(
                When(direction=Direction.INCREASE, then='quantity'),
                default=Value(0),
                output_field=IntegerField(),
            )),
            out_sum=Sum(Case(
                When(direction=Direction.DECREASE, then='quantity'),
                default=Value(0),
                output_field=IntegerField(),
            )),
        )
        return (result['in_sum'] or 0) - (result['out_sum'] or 0)


# ---------------------------------------------------------------------------
# Allocator
# ---------------------------------------------------------------------------

class Allocator:
    """
    Satisfies a requested quantity from a medicine's eligible batches,
    soonest expiry first. Best-effort: whatever cannot be found is
    returned as shortfall, never raised.
    """

    @staticmethod
    def allocate(
        *,
        medicine_id,
        quantity: int,
        reason: str,
        actor,
        reference_type: str = '',
        reference_id: UUID | None = None,
        patient_reference: str = '',
    ) -> AllocationResult:
        return Allocator.run(AllocationRequest(
            medicine_id=medicine_id,
            quantity=quantity,
            reason=reason,
            actor=actor,
            reference_type=reference_type,
            reference_id=reference_id,
            patient_reference=patient_reference,
        ))

    @staticmethod
    def run(request: AllocationRequest) -> AllocationResult:
        if isinstance(request.quantity, bool) or not isinstance(request.quantity, int) or request.quantity <= 0:
            raise InvalidRequest(detail='Requested quantity must be a positive integer.')
        if request.actor is None:
            raise InvalidRequest(detail='An allocation must name the actor performing it.')
        medicine = _get_medicine(request.medicine_id)

        result = AllocationResult(medicine_id=medicine.pk, requested=request.quantity)
        remaining = request.quantity

        for batch in BatchStore.list_eligible(medicine.pk):
            if remaining == 0:
                break
            take = min(remaining, batch.quantity_remaining)
            if take <= 0:
                continue
            # A batch decrement and its OUT entry land together or not at all.
            try:
                with transaction.atomic():
                    BatchStore.deduct(batch.pk, take)
                    movement = MovementLedger.record(
                        medicine_id=medicine.pk,
                        batch_id=batch.pk,
                        movement_type=MovementType.OUT,
                        quantity=take,
                        reason=request.reason,
                        reference_type=request.reference_type,
                        reference_id=request.reference_id,
                        patient_reference=request.patient_reference,
                        actor=request.actor,
                    )
            except InsufficientBatchQuantity:
                logger.debug(
                    'Batch %s no longer holds %d unit(s); skipping (medicine=%s).',
                    batch.pk, take, medicine.pk,
                )
                continue

            batch.quantity_remaining -= take
            batch.status = batch.derive_status()
            result.allocations.append(BatchAllocation(batch=batch, quantity=take, movement=movement))
            remaining -= take

        if result.shortfall:
            logger.warning(
                'Allocation for medicine %s short by %d of %d unit(s) (%s).',
                medicine.pk, result.shortfall, result.requested, request.reason,
            )
        logger.info(
            'Allocated %d/%d unit(s) of medicine %s across %d batch(es).',
            result.allocated, result.requested, medicine.pk, len(result.allocations),
        )
        return result

    @staticmethod
    def available(medicine_id) -> int:
        """Total quantity an allocation could draw on right now."""
        total = BatchStore.list_eligible(medicine_id).aggregate(total=Sum('quantity_remaining'))['total']
        return total or 0


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class Reconciler:
    """Brings recorded stock in line with a physical count."""

    @staticmethod
    def reconcile(*, medicine_id, actual_count, actor, ip_address: str | None = None) -> ReconciliationResult:
        """
        Apply actual_count − recorded total to the oldest-expiry eligible
        batch and record a single ADJUSTMENT. Shrinkage larger than the
        batch is clamped at zero; surplus larger than the batch can take
        back raises SurplusExceedsBatch and writes nothing. Retries when a
        concurrent write changes that batch between the read and the write.
        """
        actual_count = _to_int(actual_count, field_name='actual_count')
        if actual_count < 0:
            raise StockValidationError(detail='actual_count cannot be negative.')
        if actor is None:
            raise StockValidationError(detail='A reconciliation must name the actor performing it.')
        medicine = _get_medicine(medicine_id)

        max_attempts = settings.STOCK_RECONCILE_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            result = Reconciler._attempt(medicine, actual_count, actor, ip_address)
            if result is not None:
                return result
            logger.info(
                'Reconciliation of medicine %s lost a race (attempt %d/%d); retrying.',
                medicine.pk, attempt, max_attempts,
            )
        raise ReconciliationConflict()

    @staticmethod
    @transaction.atomic
    def _attempt(medicine: Medicine, actual_count: int, actor, ip_address) -> ReconciliationResult | None:
        _lock_medicine(medicine.pk)
        batches = list(BatchStore.list_eligible(medicine.pk).select_for_update())

        recorded_total = sum(b.quantity_remaining for b in batches)
        difference = actual_count - recorded_total
        if difference == 0:
            logger.info('Reconciliation of medicine %s: no drift (%d units).', medicine.pk, recorded_total)
            return ReconciliationResult(
                medicine_id=medicine.pk,
                actual_count=actual_count,
                recorded_total=recorded_total,
                difference=0,
            )

        if not batches:
            raise NoBatchToAdjust(
                detail=f'Counted {actual_count} unit(s) of {medicine} but it has no eligible batch to adjust.',
            )

        target = batches[0]
        before = target.quantity_remaining
        headroom = target.quantity_received - before
        if difference > headroom:
            logger.warning(
                'Reconciliation of medicine %s refused: surplus %d exceeds batch %s headroom %d.',
                medicine.pk, difference, target.pk, headroom,
            )
            raise SurplusExceedsBatch(
                detail=(
                    f'Counted {difference} unit(s) more than recorded, but batch '
                    f'{target.batch_number} can take back only {headroom}. '
                    f'Receive the excess as a new batch.'
                ),
            )
        after = max(before + difference, 0)
        applied = after - before

        movement = None
        if applied:
            if applied > 0:
                written = BatchStore.increment(target.pk, applied, expected=before)
            else:
                written = BatchStore.compare_and_set(target, expected=before, new=after)
            if not written:
                return None
            verb = 'Added' if applied > 0 else 'Removed'
            reason = f'Stock audit adjustment: {verb} {abs(applied)} units'
            if applied != difference:
                reason += f' ({abs(difference - applied)} of {abs(difference)} could not be applied to this batch)'
            movement = MovementLedger.record(
                medicine_id=medicine.pk,
                batch_id=target.pk,
                movement_type=MovementType.ADJUSTMENT,
                direction=Direction.INCREASE if applied > 0 else Direction.DECREASE,
                quantity=abs(applied),
                reason=reason,
                reference_type='StockAudit',
                actor=actor,
            )
            target.refresh_from_db()

        if applied != difference:
            logger.warning(
                'Reconciliation of medicine %s clamped on batch %s: difference=%d applied=%d.',
                medicine.pk, target.pk, difference, applied,
            )

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_ADJUSTMENT,
            model_name='Batch',
            object_id=str(target.pk),
            old_values={'quantity_remaining': before},
            new_values={
                'quantity_remaining': after,
                'actual_count': actual_count,
                'recorded_total': recorded_total,
                'difference': difference,
                'applied': applied,
            },
            ip_address=ip_address,
        )
        logger.info(
            'Reconciled medicine %s: recorded=%d counted=%d applied=%d on batch %s.',
            medicine.pk, recorded_total, actual_count, applied, target.pk,
        )
        return ReconciliationResult(
            medicine_id=medicine.pk,
            actual_count=actual_count,
            recorded_total=recorded_total,
            difference=difference,
            adjusted_batch=target,
            movement=movement,
            applied=applied,
        )


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------

class ReceivingService:
    """Brings new supply into existence, one batch per receipt."""

    @staticmethod
    @transaction.atomic
    def receive(
        *,
        medicine_id,
        quantity,
        expiry_date,
        unit_cost,
        actor,
        batch_number: str = '',
        selling_price=None,
        location: str = '',
        purchase_order=None,
    ) -> Batch:
        """
        Create a new Batch and its IN movement. Receipts are never merged
        into an existing batch, even with the same batch number.
        """
        quantity = _to_positive_int(quantity, field_name='quantity')
        expiry = _to_date(expiry_date, field_name='expiry_date')
        cost = _to_price(unit_cost, field_name='unit_cost')
        if actor is None:
            raise StockValidationError(detail='A receipt must name the actor receiving it.')
        medicine = _get_medicine(medicine_id)
        if selling_price is None or selling_price == '':
            price = medicine.selling_price
        else:
            price = _to_price(selling_price, field_name='selling_price')

        batch_number = (batch_number or '').strip() or f'BATCH-{timezone.now():%Y%m%d%H%M%S%f}'
        location = (location or '').strip() or settings.STOCK_DEFAULT_LOCATION

        batch = Batch(
            medicine=medicine,
            purchase_order=purchase_order,
            batch_number=batch_number,
            expiry_date=expiry,
            quantity_received=quantity,
            quantity_remaining=quantity,
            unit_cost=cost,
            selling_price=price,
            location=location,
            received_by=actor,
            created_by=actor,
        )
        try:
            batch.full_clean()
        except DjangoValidationError as exc:
            raise StockValidationError(detail=exc.message_dict)
        batch.save()

        if purchase_order is not None:
            reason = f'Received from PO {purchase_order.po_number}'
        else:
            reason = f'Received into {location}'
        MovementLedger.record(
            medicine_id=medicine.pk,
            batch_id=batch.pk,
            movement_type=MovementType.IN,
            quantity=quantity,
            reason=reason,
            reference_type='PurchaseOrder' if purchase_order is not None else '',
            reference_id=purchase_order.pk if purchase_order is not None else None,
            actor=actor,
        )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Batch',
            object_id=str(batch.pk),
            new_values=AuditService.snapshot(batch),
        )
        logger.info(
            'Received %d unit(s) of medicine %s as batch %s (%s), expiry %s.',
            quantity, medicine.pk, batch.pk, batch_number, expiry,
        )
        return batch


# ---------------------------------------------------------------------------
# Write-offs
# ---------------------------------------------------------------------------

class WriteOffService:
    """Removes damaged or expired units from a batch with a matching ledger entry."""

    WRITE_OFF_TYPES = {MovementType.DAMAGED, MovementType.EXPIRED}

    @staticmethod
    @transaction.atomic
    def write_off(*, batch_id, movement_type: str, actor, quantity=None, reason: str = '') -> StockMovement:
        if movement_type not in WriteOffService.WRITE_OFF_TYPES:
            raise StockValidationError(detail='Write-off type must be DAMAGED or EXPIRED.')
        if actor is None:
            raise StockValidationError(detail='A write-off must name the actor performing it.')

        batch = BatchStore.get(batch_id)
        if BatchStore.expire_overdue(batch.medicine_id):
            batch.refresh_from_db()

        if movement_type == MovementType.EXPIRED and not batch.is_expired:
            raise StockValidationError(detail=f'Batch {batch.batch_number} has not expired yet.')
        if quantity is None:
            quantity = batch.quantity_remaining
            if quantity == 0:
                raise StockValidationError(detail=f'Batch {batch.batch_number} has no stock to write off.')
        else:
            quantity = _to_positive_int(quantity, field_name='quantity')

        empties_batch = quantity == batch.quantity_remaining
        BatchStore.deduct(batch.pk, quantity, statuses=(BatchStatus.ACTIVE, BatchStatus.EXPIRED))
        if movement_type == MovementType.DAMAGED and empties_batch:
            Batch.objects.filter(pk=batch.pk).update(status=BatchStatus.DAMAGED, updated_at=timezone.now())

        movement = MovementLedger.record(
            medicine_id=batch.medicine_id,
            batch_id=batch.pk,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason or f'Written off as {movement_type.lower()}',
            reference_type='WriteOff',
            actor=actor,
        )
        logger.info(
            'Wrote off %d unit(s) of batch %s as %s.',
            quantity, batch.pk, movement_type,
        )
        return movement


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class StockQueryService:
    """Read-only stock views built on eligible batches."""

    @staticmethod
    def medicine_balance(medicine_id) -> dict[str, Any]:
        medicine = _get_medicine(medicine_id)
        agg = BatchStore.list_eligible(medicine.pk).aggregate(
            total=Sum('quantity_remaining'),
            batch_count=Count('id'),
            nearest_expiry=Min('expiry_date'),
        )
        total = agg['total'] or 0
        return {
            'medicine': medicine,
            'total_quantity': total,
            'batch_count': agg['batch_count'],
            'nearest_expiry': agg['nearest_expiry'],
            'reorder_level': medicine.reorder_level,
            'is_low_stock': total < medicine.reorder_level,
        }

    @staticmethod
    def balances(*, low_stock_only: bool = False):
        """Every catalogued medicine annotated with its eligible stock."""
        BatchStore.expire_overdue()
        eligible = _eligible_q('batches__')
        qs = (
            Medicine.objects
            .filter(is_deleted=False)
            .annotate(
                total_quantity=Coalesce(Sum('batches__quantity_remaining', filter=eligible), 0),
                batch_count=Count('batches', filter=eligible),
                nearest_expiry=Min('batches__expiry_date', filter=eligible),
            )
            .annotate(
                is_low_stock=Case(
                    When(total_quantity__lt=F('reorder_level'), then=Value(True)),
                    default=Value(False),
                    output_field=models.BooleanField(),
                ),
            )
            .order_by('name', 'strength')
        )
        if low_stock_only:
            qs = qs.filter(is_low_stock=True)
        return qs

    @staticmethod
    def stock_taking(*, medicine_id=None) -> list[dict[str, Any]]:
        """Count sheet: per medicine, its eligible batches and their recorded total."""
        BatchStore.expire_overdue(medicine_id)
        qs = BatchStore.eligible().select_related('medicine')
        if medicine_id is not None:
            qs = qs.filter(medicine_id=medicine_id)
        qs = qs.order_by('medicine__name', 'medicine_id', 'expiry_date', 'created_at')

        sheet = []
        for medicine, batches in groupby(qs, key=lambda b: b.medicine):
            batches = list(batches)
            sheet.append({
                'medicine': medicine,
                'quantity': sum(b.quantity_remaining for b in batches),
                'batches': batches,
            })
        return sheet

    @staticmethod
    def expiring_soon(*, days: int | None = None):
        """Eligible batches expiring within the given number of days."""
        if days is None:
            days = settings.STOCK_EXPIRY_WARNING_DAYS
        BatchStore.expire_overdue()
        cutoff = _today() + timedelta(days=days)
        return (
            BatchStore.eligible()
            .filter(expiry_date__lte=cutoff)
            .select_related('medicine')
        )
