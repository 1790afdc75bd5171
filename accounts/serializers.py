"""
Serializers for account endpoints.
"""
from rest_framework import serializers

from core.permissions import Role
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Public representation of a user; never exposes credentials."""

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role',
            'profile_image', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class UserMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name']


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)
    first_name = serializers.CharField(min_length=2, max_length=150)
    last_name = serializers.CharField(min_length=2, max_length=150)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(min_length=2, max_length=150, required=False)
    last_name = serializers.CharField(min_length=2, max_length=150, required=False)
    profile_image = serializers.URLField(max_length=500, required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(min_length=8, write_only=True)


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    new_password = serializers.CharField(min_length=8, write_only=True)


class AdminUserUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    first_name = serializers.CharField(min_length=2, max_length=150, required=False)
    last_name = serializers.CharField(min_length=2, max_length=150, required=False)
    role = serializers.ChoiceField(choices=Role.CHOICES, required=False)
