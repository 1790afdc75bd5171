"""
Account API Views.

Implements:
- POST /auth/register/, /auth/login/, /auth/logout/
- GET/PATCH /auth/profile/, POST /auth/change-password/
- POST /auth/forgot-password/, /auth/reset-password/
- Admin user management under /admin/users/
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from core.permissions import IsAdmin
from core.rate_limiting import rate_limit
from core.responses import success, success_list
from . import services
from .models import User
from .serializers import (
    AdminUserUpdateSerializer,
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)


class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, token = services.register_user(**serializer.validated_data)
        return success(
            {'user': UserSerializer(user).data, 'token': token},
            message='User registered successfully',
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @rate_limit(max_requests=10, window_seconds=60)
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, token = services.login(**serializer.validated_data)
        return success({'user': UserSerializer(user).data, 'token': token}, message='Login successful')


class LogoutView(APIView):
    def post(self, request):
        services.logout(request.auth)
        return success(message='Logged out successfully')


class ProfileView(APIView):
    def get(self, request):
        return success(UserSerializer(request.user).data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.update_profile(request.user, **serializer.validated_data)
        return success(UserSerializer(user).data, message='Profile updated successfully')


class ChangePasswordView(APIView):
    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.change_password(request.user, **serializer.validated_data)
        return success(message='Password changed successfully')


class ForgotPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @rate_limit(max_requests=5, window_seconds=300)
    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.request_password_reset(serializer.validated_data['email'])
        return success(message='If the email exists, a password reset link has been sent')


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.reset_password(**serializer.validated_data)
        return success(message='Password reset successfully')


class AdminUserListView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        users = User.objects.all()
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        return success_list(UserSerializer(users, many=True).data)


class AdminUserDetailView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, pk):
        return success(UserSerializer(services.get_user(pk)).data)

    def patch(self, request, pk):
        serializer = AdminUserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.admin_update_user(pk, **serializer.validated_data)
        return success(UserSerializer(user).data, message='User updated successfully')

    def delete(self, request, pk):
        services.admin_delete_user(request.user, pk)
        return success(message='User deleted successfully')
