"""
Stock — Filters

@file stock/filters.py
"""

import django_filters

from .models import Batch


class BatchFilter(django_filters.FilterSet):
    expires_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lte')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock')

    class Meta:
        model = Batch
        fields = ['medicine', 'status', 'location', 'purchase_order']

    def filter_in_stock(self, queryset, name, value):
        if value:
            return queryset.filter(quantity_remaining__gt=0)
        return queryset.filter(quantity_remaining=0)
