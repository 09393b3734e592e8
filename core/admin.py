"""
Core — Django Admin Configuration

Read-only viewer over the audit trail. Stock adjustments get their own
filter so reconciliations can be reviewed separately from routine edits.

@file core/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from core.models import AuditLog

STOCK_MODELS = (
    'Batch', 'StockMovement', 'PurchaseOrder',
    'PatientDispensing', 'DirectSale', 'Requisition',
)


class StockRecordFilter(admin.SimpleListFilter):
    title = _('record kind')
    parameter_name = 'kind'

    def lookups(self, request, model_admin):
        return (
            ('stock', _('Stock & orders')),
            ('catalogue', _('Catalogue & staff')),
        )

    def queryset(self, request, queryset):
        if self.value() == 'stock':
            return queryset.filter(model_name__in=STOCK_MODELS)
        if self.value() == 'catalogue':
            return queryset.exclude(model_name__in=STOCK_MODELS)
        return queryset


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = (
        'timestamp', 'action_badge', 'model_name', 'object_id',
        'changed_fields', 'actor',
    )
    list_filter = ('action', StockRecordFilter, 'model_name')
    search_fields = ('object_id', 'actor__email')
    readonly_fields = [f.name for f in AuditLog._meta.fields]
    date_hierarchy = 'timestamp'
    list_select_related = ('actor',)
    list_per_page = 50

    fieldsets = (
        (None, {'fields': ('action', 'model_name', 'object_id', 'actor', 'ip_address', 'timestamp')}),
        (_('Values'), {'fields': ('old_values', 'new_values')}),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Fields'))
    def changed_fields(self, obj):
        return ', '.join(sorted((obj.new_values or {}).keys())) or '-'

    @admin.display(description=_('Action'), ordering='action')
    def action_badge(self, obj):
        color = {
            AuditLog.ActionChoices.CREATE: '#22c55e',
            AuditLog.ActionChoices.UPDATE: '#3b82f6',
            AuditLog.ActionChoices.SOFT_DELETE: '#f97316',
            AuditLog.ActionChoices.STATUS_CHANGE: '#eab308',
            AuditLog.ActionChoices.ADJUSTMENT: '#8b5cf6',
        }.get(obj.action, '#6b7280')
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:4px;">{}</span>',
            color, obj.get_action_display(),
        )
