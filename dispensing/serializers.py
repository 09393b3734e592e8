"""
Dispensing — Serializers

@file dispensing/serializers.py
"""

from rest_framework import serializers

from users.models import Department

from .models import DirectSale, DirectSaleItem, PatientDispensing, Requisition, RequisitionItem


# ---------------------------------------------------------------------------
# Patient dispensing
# ---------------------------------------------------------------------------

class PatientDispensingReadSerializer(serializers.ModelSerializer):
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    shortfall = serializers.IntegerField(read_only=True)

    class Meta:
        model = PatientDispensing
        fields = [
            'id', 'patient_reference', 'medicine', 'medicine_name',
            'quantity_requested', 'quantity_dispensed', 'shortfall',
            'prescription_reference', 'status', 'status_display',
            'issued_by', 'notes', 'created_at',
        ]
        read_only_fields = fields


class PatientDispensingWriteSerializer(serializers.Serializer):
    patient_reference = serializers.CharField(max_length=64)
    medicine = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    prescription_reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


# ---------------------------------------------------------------------------
# Direct sales
# ---------------------------------------------------------------------------

class DirectSaleItemReadSerializer(serializers.ModelSerializer):
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)

    class Meta:
        model = DirectSaleItem
        fields = [
            'id', 'medicine', 'medicine_name',
            'quantity_requested', 'quantity_sold', 'unit_price', 'line_total',
        ]
        read_only_fields = fields


class DirectSaleReadSerializer(serializers.ModelSerializer):
    items = DirectSaleItemReadSerializer(many=True, read_only=True)

    class Meta:
        model = DirectSale
        fields = ['id', 'client_name', 'total_cost', 'sold_by', 'items', 'created_at']
        read_only_fields = fields


class LineWriteSerializer(serializers.Serializer):
    medicine_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class DirectSaleWriteSerializer(serializers.Serializer):
    client_name = serializers.CharField(max_length=255)
    items = LineWriteSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required.')
        return value


# ---------------------------------------------------------------------------
# Requisitions
# ---------------------------------------------------------------------------

class RequisitionItemReadSerializer(serializers.ModelSerializer):
    medicine_name = serializers.CharField(source='medicine.__str__', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    outstanding = serializers.IntegerField(read_only=True)

    class Meta:
        model = RequisitionItem
        fields = [
            'id', 'medicine', 'medicine_name',
            'requested_quantity', 'issued_quantity', 'reserved_quantity', 'outstanding',
            'status', 'status_display', 'remarks',
        ]
        read_only_fields = fields


class RequisitionReadSerializer(serializers.ModelSerializer):
    department_display = serializers.CharField(source='get_department_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items = RequisitionItemReadSerializer(many=True, read_only=True)

    class Meta:
        model = Requisition
        fields = [
            'id', 'requisition_number', 'department', 'department_display',
            'location', 'priority', 'status', 'status_display',
            'requested_by', 'issued_by', 'issued_at', 'notes',
            'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class RequisitionWriteSerializer(serializers.Serializer):
    department = serializers.ChoiceField(choices=Department.choices)
    location = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(
        choices=Requisition.PriorityChoices.choices,
        default=Requisition.PriorityChoices.NORMAL,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = LineWriteSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required.')
        return value


class IssueItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)
    allow_partial = serializers.BooleanField(default=True)


class RejectItemSerializer(serializers.Serializer):
    remarks = serializers.CharField(max_length=255)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
