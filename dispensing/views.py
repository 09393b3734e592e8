"""
Dispensing — Views

@file dispensing/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import DirectSale, PatientDispensing, Requisition
from .permissions import CanDispense, CanIssueRequisition, CanRequestStock
from .serializers import (
    CancelSerializer,
    DirectSaleReadSerializer,
    DirectSaleWriteSerializer,
    IssueItemSerializer,
    PatientDispensingReadSerializer,
    PatientDispensingWriteSerializer,
    RejectItemSerializer,
    RequisitionItemReadSerializer,
    RequisitionReadSerializer,
    RequisitionWriteSerializer,
)
from .services import DispensingService, RequisitionService


class _CreateListRetrieveViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    pass


class PatientDispensingViewSet(_CreateListRetrieveViewSet):
    permission_classes = [IsAuthenticated, CanDispense]
    filterset_fields = ['medicine', 'status', 'patient_reference']
    search_fields = ['patient_reference', 'prescription_reference']
    ordering = ['-created_at']

    def get_queryset(self):
        return PatientDispensing.objects.select_related('medicine')

    def get_serializer_class(self):
        if self.action == 'create':
            return PatientDispensingWriteSerializer
        return PatientDispensingReadSerializer

    def create(self, request, *args, **kwargs):
        ser = PatientDispensingWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        record = DispensingService.dispense_to_patient(
            medicine_id=data.pop('medicine'), actor=request.user, **data,
        )
        return Response(
            {'success': True, 'data': PatientDispensingReadSerializer(record).data},
            status=status.HTTP_201_CREATED,
        )


class DirectSaleViewSet(_CreateListRetrieveViewSet):
    permission_classes = [IsAuthenticated, CanDispense]
    search_fields = ['client_name']
    ordering = ['-created_at']

    def get_queryset(self):
        return DirectSale.objects.prefetch_related('items__medicine')

    def get_serializer_class(self):
        if self.action == 'create':
            return DirectSaleWriteSerializer
        return DirectSaleReadSerializer

    def create(self, request, *args, **kwargs):
        ser = DirectSaleWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        sale = DispensingService.direct_sale(
            client_name=ser.validated_data['client_name'],
            items=ser.validated_data['items'],
            actor=request.user,
        )
        return Response(
            {'success': True, 'data': DirectSaleReadSerializer(sale).data},
            status=status.HTTP_201_CREATED,
        )


class RequisitionViewSet(_CreateListRetrieveViewSet):
    """
    Department requisitions. Items are issued or rejected one at a time
    under ``/requisitions/{id}/items/{item_id}/``.
    """

    permission_classes = [IsAuthenticated, CanRequestStock]
    filterset_fields = ['department', 'status', 'priority']
    search_fields = ['requisition_number', 'location']
    ordering_fields = ['created_at', 'priority']
    ordering = ['-created_at']

    def get_queryset(self):
        return Requisition.objects.filter(is_deleted=False).prefetch_related('items__medicine')

    def get_serializer_class(self):
        if self.action == 'create':
            return RequisitionWriteSerializer
        return RequisitionReadSerializer

    def create(self, request, *args, **kwargs):
        ser = RequisitionWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        requisition = RequisitionService.create_requisition(actor=request.user, **ser.validated_data)
        return Response(
            {'success': True, 'data': RequisitionReadSerializer(requisition).data},
            status=status.HTTP_201_CREATED,
        )

    @action(
        detail=True, methods=['post'], url_path=r'items/(?P<item_id>[^/.]+)/issue',
        permission_classes=[IsAuthenticated, CanIssueRequisition],
    )
    def issue_item(self, request, pk=None, item_id=None):
        ser = IssueItemSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        item = RequisitionService.issue_item(
            requisition_id=pk, item_id=item_id, actor=request.user, **ser.validated_data,
        )
        return Response({'success': True, 'data': RequisitionItemReadSerializer(item).data})

    @action(
        detail=True, methods=['post'], url_path=r'items/(?P<item_id>[^/.]+)/reject',
        permission_classes=[IsAuthenticated, CanIssueRequisition],
    )
    def reject_item(self, request, pk=None, item_id=None):
        ser = RejectItemSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        item = RequisitionService.reject_item(
            requisition_id=pk, item_id=item_id, actor=request.user,
            remarks=ser.validated_data['remarks'],
        )
        return Response({'success': True, 'data': RequisitionItemReadSerializer(item).data})

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        ser = CancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        requisition = RequisitionService.cancel_requisition(
            requisition_id=pk, actor=request.user, reason=ser.validated_data['reason'],
        )
        return Response({'success': True, 'data': RequisitionReadSerializer(requisition).data})
