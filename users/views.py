"""
Users — Views

JWT login/refresh and the current-user endpoint.

@file users/views.py
"""

from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .serializers import StaffTokenObtainPairSerializer, UserReadSerializer


class LoginView(TokenObtainPairView):
    """POST /api/v1/auth/token/ — Authenticate with email + password."""
    permission_classes = [AllowAny]
    serializer_class = StaffTokenObtainPairSerializer


class TokenRefreshAPIView(TokenRefreshView):
    permission_classes = [AllowAny]


class MeView(APIView):
    """GET /api/v1/auth/me/ — Profile of the authenticated user."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            'success': True,
            'data': UserReadSerializer(request.user).data,
        })
