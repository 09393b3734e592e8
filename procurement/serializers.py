"""
Procurement — Serializers

@file procurement/serializers.py
"""

from rest_framework import serializers

from stock.serializers import BatchMinimalSerializer

from .models import PurchaseOrder


class PurchaseOrderReadSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    batches = BatchMinimalSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'supplier_name', 'supplier_contact',
            'supplier_email', 'supplier_phone',
            'total_amount', 'status', 'status_display', 'completed_at',
            'notes', 'batches', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PurchaseOrderWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = PurchaseOrder
        fields = [
            'po_number', 'supplier_name', 'supplier_contact',
            'supplier_email', 'supplier_phone', 'notes',
        ]

    def validate_po_number(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError('PO number is required.')
        return value


class PurchaseOrderReceiveSerializer(serializers.Serializer):
    medicine = serializers.UUIDField()
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    expiry_date = serializers.DateField()
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    selling_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True, default=None,
    )
    location = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class PurchaseOrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
