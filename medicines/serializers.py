"""
Medicines — Serializers

Read and write serializers for the Medicine catalogue.

@file medicines/serializers.py
"""

from rest_framework import serializers

from .models import Medicine


class MedicineReadSerializer(serializers.ModelSerializer):
    dosage_form_display = serializers.CharField(
        source='get_dosage_form_display', read_only=True,
    )
    category_display = serializers.CharField(
        source='get_category_display', read_only=True,
    )

    class Meta:
        model = Medicine
        fields = [
            'id', 'name', 'generic_name',
            'dosage_form', 'dosage_form_display',
            'strength', 'manufacturer',
            'category', 'category_display',
            'selling_price', 'reorder_level', 'description',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MedicineWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Medicine
        fields = [
            'name', 'generic_name', 'dosage_form', 'strength',
            'manufacturer', 'category', 'selling_price',
            'reorder_level', 'description',
        ]
        extra_kwargs = {'reorder_level': {'required': False}}

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required.')
        return value

    def validate_selling_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Selling price cannot be negative.')
        return value
