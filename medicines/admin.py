"""
Medicines — Django Admin Configuration

Catalogue admin with a read-only inline of each medicine's batches,
colour-coded by time to expiry.

@file medicines/admin.py
"""

from django.contrib import admin
from django.db.models import Q, Sum
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from stock.models import Batch

from .models import Medicine


def _render_expiry_badge(batch):
    days = batch.days_to_expiry
    if days < 0:
        color, label = '#dc2626', f'EXPIRED ({abs(days)}d ago)'
    elif days <= 30:
        color, label = '#ef4444', f'{days}d left'
    elif days <= 90:
        color, label = '#f97316', f'{days}d left'
    else:
        color, label = '#22c55e', f'{days}d left'
    return format_html(
        '<span style="background:{};color:#fff;padding:2px 8px;'
        'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
        color, label,
    )


class BatchInline(admin.TabularInline):
    model = Batch
    fk_name = 'medicine'
    extra = 0
    can_delete = False
    fields = (
        'batch_number', 'expiry_date', 'expiry_badge',
        'quantity_remaining', 'quantity_received', 'location', 'status',
    )
    readonly_fields = fields
    ordering = ('expiry_date', 'created_at')
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Expiry'))
    def expiry_badge(self, obj):
        if not obj.pk:
            return '—'
        return _render_expiry_badge(obj)


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = (
        'name', 'strength', 'dosage_form', 'category',
        'selling_price', 'reorder_level', 'stock_badge', 'created_at',
    )
    list_filter = ('category', 'dosage_form', 'is_deleted')
    search_fields = ('name', 'generic_name', 'manufacturer')
    readonly_fields = (
        'id', 'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    show_full_result_count = False
    list_per_page = 30
    ordering = ('name',)
    inlines = [BatchInline]

    fieldsets = (
        (_('Identification'), {
            'fields': ('id', 'name', 'generic_name', 'manufacturer'),
        }),
        (_('Product Details'), {
            'fields': ('dosage_form', 'strength', 'category', 'description'),
        }),
        (_('Stock Control'), {
            'fields': ('selling_price', 'reorder_level'),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
        (_('Soft Delete'), {
            'fields': ('is_deleted', 'deleted_at', 'deleted_by'),
            'classes': ('collapse',),
        }),
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if not request.GET.get('is_deleted__exact'):
            qs = qs.filter(is_deleted=False)
        return qs.annotate(
            active_stock=Sum(
                'batches__quantity_remaining',
                filter=Q(batches__status=Batch.StatusChoices.ACTIVE),
            ),
        )

    @admin.display(description=_('Active stock'), ordering='active_stock')
    def stock_badge(self, obj):
        total = obj.active_stock or 0
        color = '#ef4444' if total < obj.reorder_level else '#22c55e'
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            color, total,
        )
