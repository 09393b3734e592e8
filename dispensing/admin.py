"""
Dispensing — Django Admin Configuration

Records here mirror ledger entries, so they are read-only in the admin.

@file dispensing/admin.py
"""

from django.contrib import admin

from .models import DirectSale, DirectSaleItem, PatientDispensing, Requisition, RequisitionItem


class ReadOnlyAdminMixin:

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PatientDispensing)
class PatientDispensingAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        'created_at', 'patient_reference', 'medicine',
        'quantity_requested', 'quantity_dispensed', 'status', 'issued_by',
    )
    list_filter = ('status', 'created_at')
    search_fields = ('patient_reference', 'prescription_reference', 'medicine__name')
    list_select_related = ('medicine', 'issued_by')
    date_hierarchy = 'created_at'


class DirectSaleItemInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = DirectSaleItem
    extra = 0
    fields = ('medicine', 'quantity_requested', 'quantity_sold', 'unit_price', 'line_total')


@admin.register(DirectSale)
class DirectSaleAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ('created_at', 'client_name', 'total_cost', 'sold_by')
    search_fields = ('client_name',)
    date_hierarchy = 'created_at'
    inlines = [DirectSaleItemInline]


class RequisitionItemInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = RequisitionItem
    extra = 0
    fields = ('medicine', 'requested_quantity', 'issued_quantity', 'reserved_quantity', 'status', 'remarks')


@admin.register(Requisition)
class RequisitionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ('requisition_number', 'department', 'priority', 'status', 'requested_by', 'created_at')
    list_filter = ('status', 'department', 'priority')
    search_fields = ('requisition_number', 'location')
    date_hierarchy = 'created_at'
    inlines = [RequisitionItemInline]
