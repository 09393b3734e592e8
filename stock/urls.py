"""
Stock — URL Configuration

@file stock/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AllocateStockView,
    BatchViewSet,
    ExpiringStockView,
    ReceiveStockView,
    ReconcileStockView,
    StockBalanceView,
    StockMovementViewSet,
    StockTakingView,
)

app_name = 'stock'

router = DefaultRouter()
router.register('batches', BatchViewSet, basename='batch')
router.register('movements', StockMovementViewSet, basename='movement')

urlpatterns = [
    path('receive/', ReceiveStockView.as_view(), name='receive'),
    path('allocate/', AllocateStockView.as_view(), name='allocate'),
    path('medicines/<uuid:medicine_id>/reconcile/', ReconcileStockView.as_view(), name='reconcile'),
    path('balance/', StockBalanceView.as_view(), name='balance'),
    path('taking/', StockTakingView.as_view(), name='taking'),
    path('expiring/', ExpiringStockView.as_view(), name='expiring'),
    path('', include(router.urls)),
]
