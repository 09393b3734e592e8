"""
Users — Serializers

Read serializer for staff accounts and the JWT token serializer that
embeds role names in the access token.

@file users/serializers.py
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import User


class UserReadSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)
    department_display = serializers.CharField(source='get_department_display', read_only=True)
    roles = serializers.ListField(source='role_names', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'staff_number', 'first_name', 'last_name',
            'full_name', 'phone', 'department', 'department_display',
            'status', 'roles', 'date_joined',
        ]
        read_only_fields = fields


class UserMinimalSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name']
        read_only_fields = fields


class StaffTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Adds department and roles to the token; only ACTIVE accounts may log in."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['department'] = user.department
        token['roles'] = user.role_names
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        if self.user.status != User.StatusChoices.ACTIVE:
            raise serializers.ValidationError(
                {'detail': f'Account status is {self.user.status}. Only ACTIVE accounts can log in.'},
                code='account_inactive',
            )
        data['user'] = UserReadSerializer(self.user).data
        return data
