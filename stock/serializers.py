"""
Stock — Serializers

Read serializers for batches and ledger entries, input serializers for
the receive / allocate / reconcile / write-off operations.

@file stock/serializers.py
"""

from rest_framework import serializers

from .models import Batch, StockMovement


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

class BatchReadSerializer(serializers.ModelSerializer):
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    days_to_expiry = serializers.IntegerField(read_only=True)
    is_eligible = serializers.BooleanField(read_only=True)
    purchase_order_number = serializers.CharField(
        source='purchase_order.po_number', read_only=True, default=None,
    )

    class Meta:
        model = Batch
        fields = [
            'id', 'medicine', 'medicine_name',
            'batch_number', 'expiry_date', 'days_to_expiry',
            'quantity_received', 'quantity_remaining',
            'unit_cost', 'selling_price', 'location',
            'status', 'status_display', 'is_eligible',
            'purchase_order', 'purchase_order_number',
            'received_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BatchMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Batch
        fields = ['id', 'batch_number', 'expiry_date', 'quantity_remaining', 'location', 'status']
        read_only_fields = fields


# ---------------------------------------------------------------------------
# StockMovement
# ---------------------------------------------------------------------------

class StockMovementReadSerializer(serializers.ModelSerializer):
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    batch_number = serializers.CharField(source='batch.batch_number', read_only=True, default=None)
    performed_by_email = serializers.EmailField(source='performed_by.email', read_only=True)
    signed_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'medicine', 'medicine_name', 'batch', 'batch_number',
            'movement_type', 'direction', 'quantity', 'signed_quantity',
            'reason', 'reference_type', 'reference_id', 'patient_reference',
            'performed_by', 'performed_by_email', 'created_at',
        ]
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Operation inputs
# ---------------------------------------------------------------------------

class ReceiveStockSerializer(serializers.Serializer):
    medicine = serializers.UUIDField()
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    expiry_date = serializers.DateField()
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    selling_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True, default=None,
    )
    location = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class AllocateStockSerializer(serializers.Serializer):
    medicine = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)
    patient_reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')


class ReconcileSerializer(serializers.Serializer):
    actual_count = serializers.IntegerField(min_value=0)


class WriteOffSerializer(serializers.Serializer):
    movement_type = serializers.ChoiceField(choices=[
        StockMovement.MovementType.DAMAGED,
        StockMovement.MovementType.EXPIRED,
    ])
    quantity = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class MovementHistoryQuerySerializer(serializers.Serializer):
    """Query-string filters for the ledger, named as MovementLedger.history expects."""
    medicine = serializers.UUIDField(required=False, source='medicine_id')
    batch = serializers.UUIDField(required=False, source='batch_id')
    actor = serializers.UUIDField(required=False, source='actor_id')
    movement_type = serializers.ChoiceField(choices=StockMovement.MovementType.choices, required=False)
    direction = serializers.ChoiceField(choices=StockMovement.Direction.choices, required=False)
    reference_type = serializers.CharField(max_length=100, required=False)
    reference_id = serializers.UUIDField(required=False)
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)


# ---------------------------------------------------------------------------
# Operation outputs
# ---------------------------------------------------------------------------

class BatchAllocationSerializer(serializers.Serializer):
    batch = BatchMinimalSerializer(read_only=True)
    quantity = serializers.IntegerField(read_only=True)
    movement = serializers.UUIDField(source='movement.pk', read_only=True)


class AllocationResultSerializer(serializers.Serializer):
    medicine = serializers.UUIDField(source='medicine_id', read_only=True)
    requested = serializers.IntegerField(read_only=True)
    allocated = serializers.IntegerField(read_only=True)
    shortfall = serializers.IntegerField(read_only=True)
    is_complete = serializers.BooleanField(read_only=True)
    allocations = BatchAllocationSerializer(many=True, read_only=True)


class ReconciliationResultSerializer(serializers.Serializer):
    medicine = serializers.UUIDField(source='medicine_id', read_only=True)
    actual_count = serializers.IntegerField(read_only=True)
    recorded_total = serializers.IntegerField(read_only=True)
    difference = serializers.IntegerField(read_only=True)
    applied = serializers.IntegerField(read_only=True)
    unapplied = serializers.IntegerField(read_only=True)
    adjusted_batch = BatchMinimalSerializer(read_only=True, allow_null=True)
    movement = StockMovementReadSerializer(read_only=True, allow_null=True)


class MedicineBalanceSerializer(serializers.Serializer):
    medicine = serializers.UUIDField(source='id', read_only=True)
    name = serializers.CharField(read_only=True)
    strength = serializers.CharField(read_only=True)
    dosage_form = serializers.CharField(read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)
    batch_count = serializers.IntegerField(read_only=True)
    nearest_expiry = serializers.DateField(read_only=True, allow_null=True)
    reorder_level = serializers.IntegerField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)


class StockTakingLineSerializer(serializers.Serializer):
    medicine = serializers.UUIDField(source='medicine.pk', read_only=True)
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    quantity = serializers.IntegerField(read_only=True)
    batches = BatchMinimalSerializer(many=True, read_only=True)


class BalanceSummarySerializer(serializers.Serializer):
    medicine = serializers.UUIDField(source='medicine.pk', read_only=True)
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)
    batch_count = serializers.IntegerField(read_only=True)
    nearest_expiry = serializers.DateField(read_only=True, allow_null=True)
    reorder_level = serializers.IntegerField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
