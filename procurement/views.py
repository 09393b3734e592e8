"""
Procurement — Views

@file procurement/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stock.serializers import BatchReadSerializer

from .models import PurchaseOrder
from .permissions import CanManagePurchaseOrders
from .serializers import (
    PurchaseOrderCancelSerializer,
    PurchaseOrderReadSerializer,
    PurchaseOrderReceiveSerializer,
    PurchaseOrderWriteSerializer,
)
from .services import PurchaseOrderService


class PurchaseOrderViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Purchase orders. Not deletable: cancel instead. Goods are received
    line by line through the ``receive`` action.
    """

    permission_classes = [IsAuthenticated, CanManagePurchaseOrders]
    filterset_fields = ['status', 'supplier_name']
    search_fields = ['po_number', 'supplier_name']
    ordering_fields = ['created_at', 'total_amount', 'po_number']
    ordering = ['-created_at']

    def get_queryset(self):
        return PurchaseOrder.objects.filter(is_deleted=False).prefetch_related('batches')

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return PurchaseOrderReadSerializer
        return PurchaseOrderWriteSerializer

    def create(self, request, *args, **kwargs):
        ser = PurchaseOrderWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = PurchaseOrderService.create_order(actor=request.user, **ser.validated_data)
        return Response(
            {'success': True, 'data': PurchaseOrderReadSerializer(order).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        ser = PurchaseOrderWriteSerializer(self.get_object(), data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        fields = dict(ser.validated_data)
        fields.pop('po_number', None)
        order = PurchaseOrderService.update_order(
            order_id=kwargs['pk'], actor=request.user, **fields,
        )
        return Response({'success': True, 'data': PurchaseOrderReadSerializer(order).data})

    @action(detail=True, methods=['post'], url_path='receive')
    def receive(self, request, pk=None):
        ser = PurchaseOrderReceiveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        batch = PurchaseOrderService.receive_item(
            order_id=pk,
            medicine_id=data.pop('medicine'),
            actor=request.user,
            **data,
        )
        return Response(
            {'success': True, 'data': BatchReadSerializer(batch).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['post'], url_path='complete')
    def complete(self, request, pk=None):
        order = PurchaseOrderService.complete_order(order_id=pk, actor=request.user)
        return Response({'success': True, 'data': PurchaseOrderReadSerializer(order).data})

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        ser = PurchaseOrderCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = PurchaseOrderService.cancel_order(
            order_id=pk, actor=request.user, reason=ser.validated_data['reason'],
        )
        return Response({'success': True, 'data': PurchaseOrderReadSerializer(order).data})
