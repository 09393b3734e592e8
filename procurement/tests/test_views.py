"""
Tests — Purchase order API endpoints.

@file procurement/tests/test_views.py
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from procurement.models import PurchaseOrder
from tests.factories import MedicineFactory, PurchaseOrderFactory


pytestmark = pytest.mark.django_db


class TestPurchaseOrderAPI:

    def test_list_open_to_staff(self, authenticated_client):
        PurchaseOrderFactory.create_batch(2)
        resp = authenticated_client.get(reverse('api-v1:procurement:purchase-order-list'))
        assert resp.status_code == 200
        assert len(resp.data['results']) == 2

    def test_create_requires_role(self, authenticated_client):
        resp = authenticated_client.post(
            reverse('api-v1:procurement:purchase-order-list'),
            {'po_number': 'PO-9', 'supplier_name': 'Acme'}, format='json',
        )
        assert resp.status_code == 403

    def test_create_as_store_keeper(self, role_client):
        client = role_client('STORE_KEEPER')
        resp = client.post(
            reverse('api-v1:procurement:purchase-order-list'),
            {'po_number': 'po-9', 'supplier_name': 'Acme'}, format='json',
        )
        assert resp.status_code == 201
        assert resp.data['data']['po_number'] == 'PO-9'
        assert resp.data['data']['status'] == PurchaseOrder.StatusChoices.PENDING

    def test_receive_then_complete(self, admin_client):
        order = PurchaseOrderFactory()
        medicine = MedicineFactory()
        url = reverse('api-v1:procurement:purchase-order-receive', args=[order.pk])
        resp = admin_client.post(url, {
            'medicine': str(medicine.pk),
            'expiry_date': str(timezone.now().date() + timedelta(days=365)),
            'quantity': 40,
            'unit_cost': '1.25',
        }, format='json')
        assert resp.status_code == 201
        assert resp.data['data']['purchase_order_number'] == order.po_number

        resp = admin_client.get(reverse('api-v1:procurement:purchase-order-detail', args=[order.pk]))
        assert resp.data['status'] == PurchaseOrder.StatusChoices.PARTIAL
        assert len(resp.data['batches']) == 1

        resp = admin_client.post(reverse('api-v1:procurement:purchase-order-complete', args=[order.pk]))
        assert resp.status_code == 200
        assert resp.data['data']['status'] == PurchaseOrder.StatusChoices.COMPLETED

    def test_cancel_completed_order_rejected(self, admin_client):
        order = PurchaseOrderFactory(status=PurchaseOrder.StatusChoices.COMPLETED)
        url = reverse('api-v1:procurement:purchase-order-cancel', args=[order.pk])
        resp = admin_client.post(url, {'reason': 'Too late'}, format='json')
        assert resp.status_code == 400
        assert resp.data['code'] == 'INVALID_STATE_TRANSITION'

    def test_no_delete_route(self, admin_client):
        order = PurchaseOrderFactory()
        resp = admin_client.delete(reverse('api-v1:procurement:purchase-order-detail', args=[order.pk]))
        assert resp.status_code == 405
