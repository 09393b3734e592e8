"""
Medicines — Views

DRF ViewSet for the medicine catalogue, with nested read-only views of
each medicine's batches and stock balance.

@file medicines/views.py
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stock.models import Batch
from stock.serializers import BalanceSummarySerializer, BatchReadSerializer
from stock.services import StockQueryService

from .models import Medicine
from .permissions import CanModifyMedicine
from .serializers import MedicineReadSerializer, MedicineWriteSerializer
from .services import MedicineService


class MedicineViewSet(viewsets.ModelViewSet):
    """
    CRUD for the medicine catalogue.

    List/retrieve open to any authenticated user.
    Create/update/delete restricted to STORE_ADMIN / PHARMACIST.
    """

    permission_classes = [IsAuthenticated, CanModifyMedicine]
    filterset_fields = ['dosage_form', 'category']
    search_fields = ['name', 'generic_name', 'manufacturer']
    ordering_fields = ['name', 'selling_price', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Medicine.objects.filter(is_deleted=False)

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve', 'batches', 'balance'):
            return MedicineReadSerializer
        return MedicineWriteSerializer

    def perform_create(self, serializer):
        medicine = MedicineService.create_medicine(
            actor=self.request.user, **serializer.validated_data,
        )
        serializer.instance = medicine

    def perform_update(self, serializer):
        medicine = MedicineService.update_medicine(
            medicine_id=self.get_object().pk,
            actor=self.request.user,
            **serializer.validated_data,
        )
        serializer.instance = medicine

    def perform_destroy(self, instance):
        MedicineService.delete_medicine(medicine_id=instance.pk, actor=self.request.user)

    # --- Nested stock views ---

    @action(detail=True, methods=['get'], url_path='batches')
    def batches(self, request, pk=None):
        medicine = self.get_object()
        batches = (
            Batch.objects
            .filter(medicine=medicine)
            .select_related('medicine', 'purchase_order')
            .order_by('expiry_date', 'created_at')
        )
        status_filter = request.query_params.get('status')
        if status_filter:
            batches = batches.filter(status=status_filter.upper())
        page = self.paginate_queryset(batches)
        if page is not None:
            ser = BatchReadSerializer(page, many=True)
            return self.get_paginated_response(ser.data)
        ser = BatchReadSerializer(batches, many=True)
        return Response({'success': True, 'data': ser.data})

    @action(detail=True, methods=['get'], url_path='balance')
    def balance(self, request, pk=None):
        medicine = self.get_object()
        summary = StockQueryService.medicine_balance(medicine.pk)
        return Response({'success': True, 'data': BalanceSummarySerializer(summary).data})
