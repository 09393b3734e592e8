"""
MediStock — Root URL Configuration

All API endpoints are namespaced under /api/v1/.
The DRF browsable API is available for route inspection in development.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse

admin.site.site_header = 'MediStock Administration'
admin.site.site_title = 'MediStock'
admin.site.index_title = 'Pharmacy Inventory & Batch Ledger'


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """MediStock API v1 — endpoint directory."""
    return Response({
        'auth': {
            'login': reverse('api-v1:auth:login', request=request, format=format),
            'refresh': reverse('api-v1:auth:token-refresh', request=request, format=format),
            'me': reverse('api-v1:auth:me', request=request, format=format),
        },
        'medicines': reverse('api-v1:medicines:medicine-list', request=request, format=format),
        'stock': {
            'batches': reverse('api-v1:stock:batch-list', request=request, format=format),
            'movements': reverse('api-v1:stock:movement-list', request=request, format=format),
            'receive': reverse('api-v1:stock:receive', request=request, format=format),
            'allocate': reverse('api-v1:stock:allocate', request=request, format=format),
            'balance': reverse('api-v1:stock:balance', request=request, format=format),
            'taking': reverse('api-v1:stock:taking', request=request, format=format),
            'expiring': reverse('api-v1:stock:expiring', request=request, format=format),
        },
        'procurement': {
            'purchase_orders': reverse(
                'api-v1:procurement:purchase-order-list', request=request, format=format,
            ),
        },
        'dispensing': {
            'patient': reverse('api-v1:dispensing:patient-dispensing-list', request=request, format=format),
            'direct_sales': reverse('api-v1:dispensing:direct-sale-list', request=request, format=format),
            'requisitions': reverse('api-v1:dispensing:requisition-list', request=request, format=format),
        },
    })


api_v1_patterns = [
    path('', api_root, name='api-root'),
    path('auth/', include('users.urls', namespace='auth')),
    path('medicines/', include('medicines.urls', namespace='medicines')),
    path('stock/', include('stock.urls', namespace='stock')),
    path('procurement/', include('procurement.urls', namespace='procurement')),
    path('dispensing/', include('dispensing.urls', namespace='dispensing')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # DRF session auth (powers the "Log in" button on the browsable API)
    path('api/auth/', include('rest_framework.urls', namespace='rest_framework')),

    # Versioned API
    path('api/v1/', include((api_v1_patterns, 'api-v1'))),
]
