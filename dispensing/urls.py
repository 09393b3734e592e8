"""
Dispensing — URL Configuration

@file dispensing/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DirectSaleViewSet, PatientDispensingViewSet, RequisitionViewSet

app_name = 'dispensing'

router = DefaultRouter()
router.register('patient', PatientDispensingViewSet, basename='patient-dispensing')
router.register('direct-sales', DirectSaleViewSet, basename='direct-sale')
router.register('requisitions', RequisitionViewSet, basename='requisition')

urlpatterns = [
    path('', include(router.urls)),
]
