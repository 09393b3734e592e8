"""
Procurement — Django Admin Configuration

@file procurement/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import PurchaseOrder


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ('po_number', 'supplier_name', 'status', 'total_amount', 'created_at', 'completed_at')
    list_filter = ('status', 'created_at')
    search_fields = ('po_number', 'supplier_name', 'supplier_email')
    readonly_fields = (
        'id', 'total_amount', 'status', 'completed_at',
        'created_by', 'updated_by', 'created_at', 'updated_at',
    )
    date_hierarchy = 'created_at'

    fieldsets = (
        (_('Order'), {
            'fields': ('id', 'po_number', 'status', 'total_amount', 'completed_at', 'notes'),
        }),
        (_('Supplier'), {
            'fields': ('supplier_name', 'supplier_contact', 'supplier_email', 'supplier_phone'),
        }),
        (_('Audit'), {
            'fields': ('created_by', 'updated_by', 'created_at', 'updated_at'),
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False
