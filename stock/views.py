"""
Stock — Views

Batch and ledger read endpoints plus the receive / allocate / reconcile /
write-off operations. All writes go through stock.services.

@file stock/views.py
"""

from django.conf import settings
from rest_framework import filters, generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.pagination import LedgerPagination
from core.services import AuditService
from medicines.services import MedicineService

from .filters import BatchFilter
from .models import Batch
from .permissions import (
    CanAllocateStock,
    CanReceiveStock,
    CanReconcileStock,
    CanWriteOffStock,
)
from .serializers import (
    AllocateStockSerializer,
    AllocationResultSerializer,
    BatchReadSerializer,
    MedicineBalanceSerializer,
    MovementHistoryQuerySerializer,
    ReceiveStockSerializer,
    ReconcileSerializer,
    ReconciliationResultSerializer,
    StockMovementReadSerializer,
    StockTakingLineSerializer,
    WriteOffSerializer,
)
from .services import (
    Allocator,
    BatchStore,
    MovementLedger,
    Reconciler,
    ReceivingService,
    StockQueryService,
    WriteOffService,
)


class BatchViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Batches are created by receiving and changed only by stock
    operations, so the resource itself is read-only.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = BatchReadSerializer
    filterset_class = BatchFilter
    search_fields = ['batch_number', 'medicine__name', 'medicine__generic_name']
    ordering_fields = ['expiry_date', 'created_at', 'quantity_remaining']
    ordering = ['expiry_date', 'created_at']

    def get_queryset(self):
        return Batch.objects.select_related('medicine', 'purchase_order')

    def list(self, request, *args, **kwargs):
        BatchStore.expire_overdue()
        return super().list(request, *args, **kwargs)

    @action(
        detail=True, methods=['post'], url_path='write-off',
        permission_classes=[IsAuthenticated, CanWriteOffStock],
    )
    def write_off(self, request, pk=None):
        ser = WriteOffSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        movement = WriteOffService.write_off(
            batch_id=pk, actor=request.user, **ser.validated_data,
        )
        return Response(
            {'success': True, 'data': StockMovementReadSerializer(movement).data},
            status=status.HTTP_201_CREATED,
        )


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    """
    The movement ledger, newest first. Insert-only; no write routes.
    Query-string filters are validated here and applied by
    MovementLedger.history.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = StockMovementReadSerializer
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    pagination_class = LedgerPagination
    search_fields = ['reason', 'patient_reference', 'batch__batch_number']
    ordering_fields = ['created_at', 'quantity']
    ordering = ['-created_at']

    def get_queryset(self):
        if self.action != 'list':
            return MovementLedger.history()
        query = MovementHistoryQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return MovementLedger.history(**query.validated_data)


class ReceiveStockView(APIView):
    permission_classes = [IsAuthenticated, CanReceiveStock]

    def post(self, request):
        ser = ReceiveStockSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        batch = ReceivingService.receive(
            medicine_id=data['medicine'],
            batch_number=data['batch_number'],
            expiry_date=data['expiry_date'],
            quantity=data['quantity'],
            unit_cost=data['unit_cost'],
            selling_price=data['selling_price'],
            location=data['location'],
            actor=request.user,
        )
        return Response(
            {'success': True, 'data': BatchReadSerializer(batch).data},
            status=status.HTTP_201_CREATED,
        )


class AllocateStockView(APIView):
    """
    Best-effort FIFO allocation. A shortfall is a normal outcome and is
    reported in the body with HTTP 200.
    """

    permission_classes = [IsAuthenticated, CanAllocateStock]

    def post(self, request):
        ser = AllocateStockSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        result = Allocator.allocate(
            medicine_id=data['medicine'],
            quantity=data['quantity'],
            reason=data['reason'],
            patient_reference=data['patient_reference'],
            actor=request.user,
        )
        return Response({'success': True, 'data': AllocationResultSerializer(result).data})


class ReconcileStockView(APIView):
    permission_classes = [IsAuthenticated, CanReconcileStock]

    def post(self, request, medicine_id):
        ser = ReconcileSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = Reconciler.reconcile(
            medicine_id=medicine_id,
            actual_count=ser.validated_data['actual_count'],
            actor=request.user,
            ip_address=AuditService.get_client_ip(request),
        )
        return Response({'success': True, 'data': ReconciliationResultSerializer(result).data})


class StockBalanceView(generics.ListAPIView):
    """Per-medicine eligible stock. ``?low_stock=true`` keeps only medicines under their reorder level."""

    permission_classes = [IsAuthenticated]
    serializer_class = MedicineBalanceSerializer
    filter_backends = []

    def get_queryset(self):
        low_only = self.request.query_params.get('low_stock', '').lower() in ('1', 'true', 'yes')
        return StockQueryService.balances(low_stock_only=low_only)


class StockTakingView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        medicine_id = request.query_params.get('medicine') or None
        if medicine_id is not None:
            medicine_id = MedicineService.get_medicine(medicine_id).pk
        sheet = StockQueryService.stock_taking(medicine_id=medicine_id)
        return Response({'success': True, 'data': StockTakingLineSerializer(sheet, many=True).data})


class ExpiringStockView(generics.ListAPIView):
    """Eligible batches expiring within ``?days=`` (default from settings)."""

    permission_classes = [IsAuthenticated]
    serializer_class = BatchReadSerializer
    filter_backends = []

    def get_queryset(self):
        try:
            days = int(self.request.query_params.get('days', settings.STOCK_EXPIRY_WARNING_DAYS))
        except (TypeError, ValueError):
            days = settings.STOCK_EXPIRY_WARNING_DAYS
        return StockQueryService.expiring_soon(days=max(days, 0))
