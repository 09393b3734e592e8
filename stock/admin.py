"""
Stock — Django Admin Configuration

Batches and ledger entries are read-only here: quantities change only
through the stock services, and StockMovement is insert-only.

@file stock/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import Batch, StockMovement


class StockMovementInline(admin.TabularInline):
    model = StockMovement
    extra = 0
    can_delete = False
    fields = ('created_at', 'movement_type', 'direction', 'quantity', 'reason', 'performed_by')
    readonly_fields = fields
    ordering = ('-created_at',)
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = (
        'batch_number', 'medicine', 'expiry_date',
        'quantity_remaining', 'quantity_received', 'location', 'status',
    )
    list_filter = ('status', 'location', 'expiry_date')
    search_fields = ('batch_number', 'medicine__name')
    readonly_fields = (
        'id', 'medicine', 'purchase_order', 'batch_number', 'expiry_date',
        'quantity_received', 'quantity_remaining', 'unit_cost', 'selling_price',
        'location', 'status', 'received_by', 'created_at', 'updated_at',
    )
    list_select_related = ('medicine',)
    date_hierarchy = 'expiry_date'
    ordering = ('expiry_date', 'created_at')
    inlines = [StockMovementInline]

    fieldsets = (
        (_('Batch'), {
            'fields': ('id', 'medicine', 'batch_number', 'expiry_date', 'location', 'status'),
        }),
        (_('Quantities'), {
            'fields': ('quantity_received', 'quantity_remaining'),
        }),
        (_('Pricing'), {
            'fields': ('unit_cost', 'selling_price'),
        }),
        (_('Receipt'), {
            'fields': ('purchase_order', 'received_by', 'created_at', 'updated_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        'created_at', 'movement_type', 'direction', 'quantity',
        'medicine', 'batch', 'performed_by', 'reason',
    )
    list_filter = ('movement_type', 'direction', 'created_at')
    search_fields = ('reason', 'patient_reference', 'batch__batch_number', 'medicine__name')
    readonly_fields = (
        'id', 'medicine', 'batch', 'movement_type', 'direction', 'quantity',
        'reason', 'reference_type', 'reference_id', 'patient_reference',
        'performed_by', 'created_at',
    )
    list_select_related = ('medicine', 'batch', 'performed_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
