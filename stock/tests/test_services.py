"""
Tests — stock engine: BatchStore, MovementLedger, Allocator, Reconciler,
ReceivingService, WriteOffService and StockQueryService.

FIFO by expiry, partial fulfilment, skipped batches on concurrent drain,
single-batch reconciliation with clamping, and ledger/batch consistency.

@file stock/tests/test_services.py
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from core.exceptions import (
    InsufficientBatchQuantity,
    InvalidRequest,
    NoBatchToAdjust,
    ReconciliationConflict,
    ResourceNotFoundError,
    StockValidationError,
    SurplusExceedsBatch,
)
from core.models import AuditLog
from stock.models import Batch, StockMovement
from stock.services import (
    Allocator,
    BatchStore,
    MovementLedger,
    ReceivingService,
    Reconciler,
    StockQueryService,
    WriteOffService,
)
from tests.factories import BatchFactory, MedicineFactory, UserFactory


pytestmark = pytest.mark.django_db

MovementType = StockMovement.MovementType
Direction = StockMovement.Direction


def _days(n):
    return timezone.now().date() + timedelta(days=n)


def _receive(medicine, quantity, expires_in, actor, **kwargs):
    return ReceivingService.receive(
        medicine_id=medicine.pk,
        quantity=quantity,
        expiry_date=_days(expires_in),
        unit_cost=Decimal('1.00'),
        actor=actor,
        **kwargs,
    )


@pytest.fixture
def actor():
    return UserFactory()


@pytest.fixture
def medicine():
    return MedicineFactory()


# ---------------------------------------------------------------------------
# BatchStore
# ---------------------------------------------------------------------------

class TestBatchStore:

    def test_list_eligible_orders_by_expiry_then_receipt(self, medicine):
        late = BatchFactory(medicine=medicine, expiry_date=_days(200))
        first = BatchFactory(medicine=medicine, expiry_date=_days(20))
        second = BatchFactory(medicine=medicine, expiry_date=_days(20))
        ids = list(BatchStore.list_eligible(medicine.pk).values_list('pk', flat=True))
        assert ids == [first.pk, second.pk, late.pk]

    def test_list_eligible_excludes_ineligible(self, medicine):
        ok = BatchFactory(medicine=medicine)
        BatchFactory(medicine=medicine, quantity_received=5, quantity_remaining=0)
        BatchFactory(medicine=medicine, expiry_date=_days(-3))
        BatchFactory()  # other medicine
        damaged = BatchFactory(medicine=medicine)
        Batch.objects.filter(pk=damaged.pk).update(status=Batch.StatusChoices.DAMAGED)
        assert list(BatchStore.list_eligible(medicine.pk)) == [ok]

    def test_list_eligible_expires_overdue_batches(self, medicine):
        batch = BatchFactory(medicine=medicine)
        # Date passes without anyone touching the row.
        Batch.objects.filter(pk=batch.pk).update(expiry_date=_days(-1))
        assert list(BatchStore.list_eligible(medicine.pk)) == []
        batch.refresh_from_db()
        assert batch.status == Batch.StatusChoices.EXPIRED

    def test_deduct(self):
        batch = BatchFactory(quantity_received=10)
        BatchStore.deduct(batch.pk, 4)
        batch.refresh_from_db()
        assert batch.quantity_remaining == 6
        assert batch.status == Batch.StatusChoices.ACTIVE

    def test_deduct_to_zero_depletes(self):
        batch = BatchFactory(quantity_received=10)
        BatchStore.deduct(batch.pk, 10)
        batch.refresh_from_db()
        assert batch.quantity_remaining == 0
        assert batch.status == Batch.StatusChoices.DEPLETED

    def test_deduct_more_than_remaining_raises(self):
        batch = BatchFactory(quantity_received=10)
        with pytest.raises(InsufficientBatchQuantity):
            BatchStore.deduct(batch.pk, 11)
        batch.refresh_from_db()
        assert batch.quantity_remaining == 10

    def test_deduct_from_expired_batch_refused(self):
        batch = BatchFactory(expiry_date=_days(-1))
        with pytest.raises(InsufficientBatchQuantity):
            BatchStore.deduct(batch.pk, 1)

    def test_deduct_non_positive_raises(self):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            BatchStore.deduct(batch.pk, 0)

    def test_increment_revives_depleted_batch(self):
        batch = BatchFactory(quantity_received=10, quantity_remaining=0)
        BatchStore.increment(batch.pk, 3)
        batch.refresh_from_db()
        assert batch.quantity_remaining == 3
        assert batch.status == Batch.StatusChoices.ACTIVE

    def test_increment_beyond_received_raises(self):
        batch = BatchFactory(quantity_received=10, quantity_remaining=8)
        with pytest.raises(StockValidationError):
            BatchStore.increment(batch.pk, 3)
        batch.refresh_from_db()
        assert batch.quantity_remaining == 8

    def test_increment_with_expected_applies_when_unchanged(self):
        batch = BatchFactory(quantity_received=10, quantity_remaining=6)
        assert BatchStore.increment(batch.pk, 3, expected=6) is True
        batch.refresh_from_db()
        assert batch.quantity_remaining == 9

    def test_increment_with_stale_expected_returns_false(self):
        batch = BatchFactory(quantity_received=10, quantity_remaining=6)
        assert BatchStore.increment(batch.pk, 3, expected=7) is False
        batch.refresh_from_db()
        assert batch.quantity_remaining == 6

    def test_compare_and_set(self):
        batch = BatchFactory(quantity_received=10)
        assert BatchStore.compare_and_set(batch, expected=10, new=4) is True
        batch.refresh_from_db()
        assert batch.quantity_remaining == 4

    def test_compare_and_set_stale_expected(self):
        batch = BatchFactory(quantity_received=10)
        assert BatchStore.compare_and_set(batch, expected=9, new=4) is False
        batch.refresh_from_db()
        assert batch.quantity_remaining == 10

    def test_get_unknown_batch(self):
        with pytest.raises(ResourceNotFoundError):
            BatchStore.get(uuid.uuid4())


# ---------------------------------------------------------------------------
# MovementLedger
# ---------------------------------------------------------------------------

class TestMovementLedger:

    def test_record_out(self, actor):
        batch = BatchFactory()
        movement = MovementLedger.record(
            medicine_id=batch.medicine_id,
            batch_id=batch.pk,
            movement_type=MovementType.OUT,
            quantity=5,
            reason='Prescription dispensing (Rx: n/a)',
            actor=actor,
        )
        assert movement.direction == Direction.DECREASE
        assert movement.signed_quantity == -5
        assert AuditLog.objects.filter(
            model_name='StockMovement', object_id=str(movement.pk),
        ).exists()

    def test_adjustment_requires_reason(self, actor):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id,
                batch_id=batch.pk,
                movement_type=MovementType.ADJUSTMENT,
                direction=Direction.DECREASE,
                quantity=1,
                reason='  ',
                actor=actor,
            )

    def test_adjustment_requires_direction(self, actor):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id,
                batch_id=batch.pk,
                movement_type=MovementType.ADJUSTMENT,
                quantity=1,
                reason='Count',
                actor=actor,
            )

    @pytest.mark.parametrize('quantity', [0, -3, 'x', None])
    def test_invalid_quantity(self, actor, quantity):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id,
                batch_id=batch.pk,
                movement_type=MovementType.IN,
                quantity=quantity,
                actor=actor,
            )

    def test_contradicting_direction_rejected(self, actor):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id,
                batch_id=batch.pk,
                movement_type=MovementType.OUT,
                direction=Direction.INCREASE,
                quantity=1,
                actor=actor,
            )

    def test_out_requires_batch(self, actor, medicine):
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=medicine.pk,
                movement_type=MovementType.OUT,
                quantity=1,
                actor=actor,
            )

    def test_unknown_type_and_missing_actor(self, actor):
        batch = BatchFactory()
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id, batch_id=batch.pk,
                movement_type='TRANSFER', quantity=1, actor=actor,
            )
        with pytest.raises(StockValidationError):
            MovementLedger.record(
                medicine_id=batch.medicine_id, batch_id=batch.pk,
                movement_type=MovementType.IN, quantity=1, actor=None,
            )
        assert StockMovement.objects.count() == 0

    def test_history_filters(self, actor, medicine):
        other_actor = UserFactory()
        a = _receive(medicine, 10, 30, actor)
        b = _receive(medicine, 10, 60, other_actor)
        Allocator.allocate(medicine_id=medicine.pk, quantity=4, reason='Ward', actor=actor)
        _receive(MedicineFactory(), 5, 30, actor)

        assert MovementLedger.history(medicine_id=medicine.pk).count() == 3
        assert MovementLedger.history(medicine_id=medicine.pk, movement_type=MovementType.OUT).count() == 1
        assert MovementLedger.history(batch_id=b.pk).count() == 1
        assert MovementLedger.history(actor_id=other_actor.pk).count() == 1
        assert MovementLedger.history(batch_id=a.pk, actor_id=actor.pk).count() == 2

    def test_history_by_direction_and_reference_type(self, actor, medicine):
        _receive(medicine, 10, 30, actor)
        Allocator.allocate(
            medicine_id=medicine.pk, quantity=2, reason='Ward', actor=actor,
            reference_type='Requisition', reference_id=uuid.uuid4(),
        )
        Allocator.allocate(medicine_id=medicine.pk, quantity=1, reason='Counter', actor=actor)

        assert MovementLedger.history(medicine_id=medicine.pk, direction=Direction.DECREASE).count() == 2
        assert MovementLedger.history(medicine_id=medicine.pk, direction=Direction.INCREASE).count() == 1
        entries = MovementLedger.history(reference_type='Requisition')
        assert [e.quantity for e in entries] == [2]

    def test_history_date_range(self, actor, medicine):
        _receive(medicine, 10, 30, actor)
        today = timezone.now().date()
        assert MovementLedger.history(medicine_id=medicine.pk, start=today, end=today).count() == 1
        assert MovementLedger.history(medicine_id=medicine.pk, end=today - timedelta(days=1)).count() == 0
        assert MovementLedger.history(medicine_id=medicine.pk, start=today + timedelta(days=1)).count() == 0

    def test_history_newest_first(self, actor, medicine):
        batch = _receive(medicine, 10, 30, actor)
        Allocator.allocate(medicine_id=medicine.pk, quantity=2, reason='Ward', actor=actor)
        entries = list(MovementLedger.history(batch_id=batch.pk))
        assert entries[0].created_at >= entries[-1].created_at


# ---------------------------------------------------------------------------
# Allocator
# ---------------------------------------------------------------------------

class TestAllocator:

    def test_fifo_across_batches(self, actor, medicine):
        a = BatchFactory(medicine=medicine, expiry_date=_days(30), quantity_received=10)
        b = BatchFactory(medicine=medicine, expiry_date=_days(180), quantity_received=20)

        result = Allocator.allocate(
            medicine_id=medicine.pk, quantity=15, reason='Ward issue', actor=actor,
        )

        assert [(x.batch.pk, x.quantity) for x in result.allocations] == [(a.pk, 10), (b.pk, 5)]
        assert result.allocated == 15
        assert result.shortfall == 0
        assert result.is_complete is True
        a.refresh_from_db()
        b.refresh_from_db()
        assert a.quantity_remaining == 0
        assert a.status == Batch.StatusChoices.DEPLETED
        assert b.quantity_remaining == 15
        outs = StockMovement.objects.filter(movement_type=MovementType.OUT)
        assert outs.count() == 2
        assert {m.batch_id: m.quantity for m in outs} == {a.pk: 10, b.pk: 5}

    def test_receipt_order_breaks_expiry_ties(self, actor, medicine):
        older = BatchFactory(medicine=medicine, expiry_date=_days(30), quantity_received=5)
        BatchFactory(medicine=medicine, expiry_date=_days(30), quantity_received=5)
        result = Allocator.allocate(medicine_id=medicine.pk, quantity=3, reason='Ward', actor=actor)
        assert result.allocations[0].batch.pk == older.pk

    def test_partial_fulfilment(self, actor, medicine):
        BatchFactory(medicine=medicine, quantity_received=5)
        result = Allocator.allocate(medicine_id=medicine.pk, quantity=8, reason='Ward', actor=actor)
        assert result.allocated == 5
        assert result.shortfall == 3
        assert result.is_partial is True
        assert StockMovement.objects.filter(movement_type=MovementType.OUT).count() == 1

    def test_no_eligible_batches_writes_nothing(self, actor, medicine):
        BatchFactory(medicine=medicine, expiry_date=_days(-5))
        result = Allocator.allocate(medicine_id=medicine.pk, quantity=8, reason='Ward', actor=actor)
        assert result.allocations == []
        assert result.allocated == 0
        assert result.shortfall == 8
        assert result.is_partial is False
        assert StockMovement.objects.count() == 0

    def test_batch_drained_concurrently_is_skipped(self, actor, medicine, monkeypatch):
        a = BatchFactory(medicine=medicine, expiry_date=_days(30), quantity_received=10)
        b = BatchFactory(medicine=medicine, expiry_date=_days(180), quantity_received=20)
        stale = list(Batch.objects.filter(medicine=medicine).order_by('expiry_date'))
        # Another writer takes most of A after the eligible list was read.
        Batch.objects.filter(pk=a.pk).update(quantity_remaining=3)
        monkeypatch.setattr(BatchStore, 'list_eligible', staticmethod(lambda medicine_id: stale))

        result = Allocator.allocate(medicine_id=medicine.pk, quantity=15, reason='Ward', actor=actor)

        assert [(x.batch.pk, x.quantity) for x in result.allocations] == [(b.pk, 15)]
        a.refresh_from_db()
        assert a.quantity_remaining == 3
        assert not StockMovement.objects.filter(batch=a).exists()

    def test_batch_references_are_recorded(self, actor, medicine):
        BatchFactory(medicine=medicine)
        ref = uuid.uuid4()
        result = Allocator.allocate(
            medicine_id=medicine.pk, quantity=2, reason='Prescription',
            actor=actor, reference_type='PatientDispensing', reference_id=ref,
            patient_reference='P-001',
        )
        movement = result.allocations[0].movement
        assert movement.reference_type == 'PatientDispensing'
        assert movement.reference_id == ref
        assert movement.patient_reference == 'P-001'
        assert movement.performed_by == actor

    @pytest.mark.parametrize('quantity', [0, -1, True, '5', 2.5])
    def test_invalid_quantity(self, actor, medicine, quantity):
        with pytest.raises(InvalidRequest):
            Allocator.allocate(medicine_id=medicine.pk, quantity=quantity, reason='Ward', actor=actor)

    def test_missing_actor(self, medicine):
        with pytest.raises(InvalidRequest):
            Allocator.allocate(medicine_id=medicine.pk, quantity=1, reason='Ward', actor=None)

    def test_unknown_medicine(self, actor):
        with pytest.raises(ResourceNotFoundError):
            Allocator.allocate(medicine_id=uuid.uuid4(), quantity=1, reason='Ward', actor=actor)

    def test_available(self, medicine):
        BatchFactory(medicine=medicine, quantity_received=7)
        BatchFactory(medicine=medicine, quantity_received=5, expiry_date=_days(-1))
        assert Allocator.available(medicine.pk) == 7


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class TestReconciler:

    @pytest.fixture
    def stocked(self, actor, medicine):
        a = _receive(medicine, 10, 30, actor)
        b = _receive(medicine, 20, 180, actor)
        return a, b

    def _adjustments(self):
        return StockMovement.objects.filter(movement_type=MovementType.ADJUSTMENT)

    def test_shrinkage_adjusts_oldest_batch(self, actor, medicine, stocked):
        a, b = stocked
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=27, actor=actor)

        assert result.recorded_total == 30
        assert result.difference == -3
        assert result.applied == -3
        assert result.adjusted_batch.pk == a.pk
        assert self._adjustments().count() == 1
        movement = self._adjustments().get()
        assert movement.batch_id == a.pk
        assert movement.direction == Direction.DECREASE
        assert movement.quantity == 3
        assert movement.reason == 'Stock audit adjustment: Removed 3 units'
        a.refresh_from_db()
        b.refresh_from_db()
        assert a.quantity_remaining == 7
        assert a.status == Batch.StatusChoices.ACTIVE
        assert b.quantity_remaining == 20

    def test_no_drift_writes_nothing(self, actor, medicine, stocked):
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=30, actor=actor)
        assert result.difference == 0
        assert result.movement is None
        assert result.adjusted_batch is None
        assert self._adjustments().count() == 0
        assert not AuditLog.objects.filter(action=AuditLog.ActionChoices.ADJUSTMENT).exists()

    def test_surplus_adds_to_oldest_batch(self, actor, medicine, stocked):
        a, _ = stocked
        Allocator.allocate(medicine_id=medicine.pk, quantity=4, reason='Ward', actor=actor)
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=29, actor=actor)
        assert result.difference == 3
        assert result.movement.direction == Direction.INCREASE
        assert result.movement.reason == 'Stock audit adjustment: Added 3 units'
        a.refresh_from_db()
        assert a.quantity_remaining == 9

    def test_shrinkage_beyond_batch_is_clamped(self, actor, medicine, stocked):
        a, b = stocked
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=5, actor=actor)
        assert result.difference == -25
        assert result.applied == -10
        assert result.unapplied == -15
        assert result.movement.quantity == 10
        assert '(15 of 25 could not be applied to this batch)' in result.movement.reason
        a.refresh_from_db()
        b.refresh_from_db()
        assert a.quantity_remaining == 0
        assert a.status == Batch.StatusChoices.DEPLETED
        assert b.quantity_remaining == 20

    def test_surplus_on_full_batch_refused(self, actor, medicine, stocked):
        a, _ = stocked
        with pytest.raises(SurplusExceedsBatch):
            Reconciler.reconcile(
                medicine_id=medicine.pk, actual_count=35, actor=actor, ip_address='10.0.0.5',
            )
        assert self._adjustments().count() == 0
        assert not AuditLog.objects.filter(action=AuditLog.ActionChoices.ADJUSTMENT).exists()
        a.refresh_from_db()
        assert a.quantity_remaining == 10

    def test_surplus_beyond_headroom_refused(self, actor, medicine, stocked):
        a, _ = stocked
        Allocator.allocate(medicine_id=medicine.pk, quantity=4, reason='Ward', actor=actor)
        with pytest.raises(SurplusExceedsBatch):
            Reconciler.reconcile(medicine_id=medicine.pk, actual_count=31, actor=actor)
        a.refresh_from_db()
        assert a.quantity_remaining == 6
        assert self._adjustments().count() == 0

    def test_surplus_filling_batch_exactly(self, actor, medicine, stocked):
        a, _ = stocked
        Allocator.allocate(medicine_id=medicine.pk, quantity=4, reason='Ward', actor=actor)
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=30, actor=actor)
        assert result.applied == 4
        assert result.unapplied == 0
        a.refresh_from_db()
        assert a.quantity_remaining == 10
        assert MovementLedger.signed_total(a.pk) == 10

    def test_surplus_retries_after_lost_race(self, actor, medicine, stocked, monkeypatch):
        a, _ = stocked
        Allocator.allocate(medicine_id=medicine.pk, quantity=4, reason='Ward', actor=actor)
        original = BatchStore.increment
        calls = []

        def flaky(batch_id, amount, *, expected=None):
            calls.append(expected)
            if len(calls) == 1:
                return False
            return original(batch_id, amount, expected=expected)

        monkeypatch.setattr(BatchStore, 'increment', staticmethod(flaky))
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=28, actor=actor)
        assert calls == [6, 6]
        assert result.applied == 2
        assert self._adjustments().count() == 1
        a.refresh_from_db()
        assert a.quantity_remaining == 8

    def test_surplus_without_batch_raises(self, actor, medicine):
        with pytest.raises(NoBatchToAdjust):
            Reconciler.reconcile(medicine_id=medicine.pk, actual_count=5, actor=actor)
        assert StockMovement.objects.count() == 0

    def test_zero_count_without_batch_is_noop(self, actor, medicine):
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=0, actor=actor)
        assert result.difference == 0

    def test_negative_count_rejected(self, actor, medicine):
        with pytest.raises(StockValidationError):
            Reconciler.reconcile(medicine_id=medicine.pk, actual_count=-1, actor=actor)

    def test_retries_after_lost_race(self, actor, medicine, stocked, monkeypatch):
        a, _ = stocked
        original = BatchStore.compare_and_set
        calls = []

        def flaky(batch, *, expected, new):
            calls.append(batch.pk)
            if len(calls) == 1:
                return False
            return original(batch, expected=expected, new=new)

        monkeypatch.setattr(BatchStore, 'compare_and_set', staticmethod(flaky))
        result = Reconciler.reconcile(medicine_id=medicine.pk, actual_count=28, actor=actor)
        assert len(calls) == 2
        assert result.applied == -2
        assert self._adjustments().count() == 1

    def test_conflict_after_max_attempts(self, actor, medicine, stocked, monkeypatch, settings):
        settings.STOCK_RECONCILE_MAX_ATTEMPTS = 2
        monkeypatch.setattr(
            BatchStore, 'compare_and_set', staticmethod(lambda batch, *, expected, new: False),
        )
        with pytest.raises(ReconciliationConflict):
            Reconciler.reconcile(medicine_id=medicine.pk, actual_count=28, actor=actor)
        assert self._adjustments().count() == 0


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------

class TestReceivingService:

    def test_receive_creates_batch_and_in_entry(self, actor, medicine):
        batch = _receive(medicine, 50, 365, actor, batch_number='LOT-1', location='WARD STORE')
        assert batch.quantity_received == 50
        assert batch.quantity_remaining == 50
        assert batch.status == Batch.StatusChoices.ACTIVE
        assert batch.received_by == actor
        assert batch.location == 'WARD STORE'
        movement = StockMovement.objects.get(batch=batch)
        assert movement.movement_type == MovementType.IN
        assert movement.quantity == 50
        assert movement.reason == 'Received into WARD STORE'
        assert AuditLog.objects.filter(model_name='Batch', object_id=str(batch.pk)).exists()

    def test_same_batch_number_never_merges(self, actor, medicine):
        first = _receive(medicine, 10, 90, actor, batch_number='LOT-1')
        second = _receive(medicine, 10, 90, actor, batch_number='LOT-1')
        assert first.pk != second.pk
        assert Batch.objects.filter(medicine=medicine).count() == 2
        assert StockMovement.objects.filter(movement_type=MovementType.IN).count() == 2

    def test_defaults(self, actor, settings):
        settings.STOCK_DEFAULT_LOCATION = 'CENTRAL'
        medicine = MedicineFactory(selling_price=Decimal('4.20'))
        batch = _receive(medicine, 5, 90, actor)
        assert batch.selling_price == Decimal('4.20')
        assert batch.location == 'CENTRAL'
        assert batch.batch_number.startswith('BATCH-')

    def test_accepts_iso_date_string(self, actor, medicine):
        batch = ReceivingService.receive(
            medicine_id=medicine.pk, quantity=5, expiry_date='2099-12-31',
            unit_cost='1.50', actor=actor,
        )
        batch.refresh_from_db()
        assert str(batch.expiry_date) == '2099-12-31'

    @pytest.mark.parametrize('overrides', [
        {'quantity': 0},
        {'quantity': -5},
        {'expiry_date': 'not-a-date'},
        {'unit_cost': '-1'},
        {'unit_cost': 'abc'},
        {'selling_price': '-2'},
    ])
    def test_invalid_input(self, actor, medicine, overrides):
        kwargs = {
            'medicine_id': medicine.pk, 'quantity': 5, 'expiry_date': _days(90),
            'unit_cost': '1.00', 'actor': actor,
        }
        kwargs.update(overrides)
        with pytest.raises(StockValidationError):
            ReceivingService.receive(**kwargs)
        assert Batch.objects.count() == 0

    def test_unknown_medicine(self, actor):
        with pytest.raises(ResourceNotFoundError):
            ReceivingService.receive(
                medicine_id=uuid.uuid4(), quantity=5, expiry_date=_days(90),
                unit_cost='1.00', actor=actor,
            )


# ---------------------------------------------------------------------------
# Write-offs
# ---------------------------------------------------------------------------

class TestWriteOffService:

    def test_partial_damage(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        movement = WriteOffService.write_off(
            batch_id=batch.pk, movement_type=MovementType.DAMAGED, quantity=5, actor=actor,
        )
        assert movement.direction == Direction.DECREASE
        assert movement.reason == 'Written off as damaged'
        batch.refresh_from_db()
        assert batch.quantity_remaining == 15
        assert batch.status == Batch.StatusChoices.ACTIVE

    def test_full_damage_quarantines_batch(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        WriteOffService.write_off(
            batch_id=batch.pk, movement_type=MovementType.DAMAGED, actor=actor, reason='Water damage',
        )
        batch.refresh_from_db()
        assert batch.quantity_remaining == 0
        assert batch.status == Batch.StatusChoices.DAMAGED

    def test_expired_write_off(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        Batch.objects.filter(pk=batch.pk).update(expiry_date=_days(-1))
        movement = WriteOffService.write_off(
            batch_id=batch.pk, movement_type=MovementType.EXPIRED, actor=actor,
        )
        assert movement.quantity == 20
        batch.refresh_from_db()
        assert batch.quantity_remaining == 0

    def test_expired_write_off_of_unexpired_batch(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        with pytest.raises(StockValidationError):
            WriteOffService.write_off(batch_id=batch.pk, movement_type=MovementType.EXPIRED, actor=actor)

    def test_write_off_type_restricted(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        with pytest.raises(StockValidationError):
            WriteOffService.write_off(batch_id=batch.pk, movement_type=MovementType.OUT, actor=actor)

    def test_write_off_more_than_remaining(self, actor, medicine):
        batch = _receive(medicine, 20, 90, actor)
        with pytest.raises(InsufficientBatchQuantity):
            WriteOffService.write_off(
                batch_id=batch.pk, movement_type=MovementType.DAMAGED, quantity=21, actor=actor,
            )


# ---------------------------------------------------------------------------
# Ledger consistency
# ---------------------------------------------------------------------------

class TestLedgerConsistency:

    def test_signed_total_matches_remaining(self, actor, medicine):
        a = _receive(medicine, 30, 30, actor)
        b = _receive(medicine, 40, 120, actor)
        c = _receive(medicine, 25, 200, actor)
        Allocator.allocate(medicine_id=medicine.pk, quantity=35, reason='Ward', actor=actor)
        WriteOffService.write_off(
            batch_id=b.pk, movement_type=MovementType.DAMAGED, quantity=6, actor=actor,
        )
        Reconciler.reconcile(medicine_id=medicine.pk, actual_count=50, actor=actor)
        Allocator.allocate(medicine_id=medicine.pk, quantity=60, reason='Ward', actor=actor)

        for batch in (a, b, c):
            batch.refresh_from_db()
            assert MovementLedger.signed_total(batch.pk) == batch.quantity_remaining
        assert sum(b.quantity_remaining for b in (a, b, c)) == 0


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestStockQueryService:

    def test_medicine_balance_counts_eligible_only(self):
        medicine = MedicineFactory(reorder_level=20)
        BatchFactory(medicine=medicine, quantity_received=12, expiry_date=_days(40))
        BatchFactory(medicine=medicine, quantity_received=30, expiry_date=_days(-2))
        BatchFactory(medicine=medicine, quantity_received=5, quantity_remaining=0)
        balance = StockQueryService.medicine_balance(medicine.pk)
        assert balance['total_quantity'] == 12
        assert balance['batch_count'] == 1
        assert balance['nearest_expiry'] == _days(40)
        assert balance['is_low_stock'] is True

    def test_balances_low_stock_only(self):
        low = MedicineFactory(name='Low', reorder_level=50)
        high = MedicineFactory(name='High', reorder_level=5)
        BatchFactory(medicine=low, quantity_received=10)
        BatchFactory(medicine=high, quantity_received=10)
        all_rows = {m.pk: m for m in StockQueryService.balances()}
        assert all_rows[low.pk].total_quantity == 10
        assert all_rows[high.pk].is_low_stock is False
        assert [m.pk for m in StockQueryService.balances(low_stock_only=True)] == [low.pk]

    def test_balances_include_unstocked_medicine(self):
        medicine = MedicineFactory(reorder_level=1)
        row = StockQueryService.balances().get(pk=medicine.pk)
        assert row.total_quantity == 0
        assert row.is_low_stock is True

    def test_stock_taking_groups_by_medicine(self):
        m1 = MedicineFactory(name='Amoxicillin')
        m2 = MedicineFactory(name='Zinc')
        BatchFactory(medicine=m1, quantity_received=4)
        BatchFactory(medicine=m1, quantity_received=6)
        BatchFactory(medicine=m2, quantity_received=3)
        sheet = StockQueryService.stock_taking()
        assert [(line['medicine'].pk, line['quantity'], len(line['batches'])) for line in sheet] == [
            (m1.pk, 10, 2),
            (m2.pk, 3, 1),
        ]
        assert len(StockQueryService.stock_taking(medicine_id=m2.pk)) == 1

    def test_expiring_soon(self):
        soon = BatchFactory(expiry_date=_days(10))
        BatchFactory(expiry_date=_days(100))
        BatchFactory(expiry_date=_days(-1))
        assert list(StockQueryService.expiring_soon(days=30)) == [soon]
