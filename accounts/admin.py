"""
Django Admin configuration for account models.
"""
from django.contrib import admin
from .models import User, RevokedToken


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'created_at']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    exclude = ['password', 'reset_token_hash', 'reset_token_expires_at']
    readonly_fields = ['last_login', 'date_joined', 'created_at', 'updated_at']


@admin.register(RevokedToken)
class RevokedTokenAdmin(admin.ModelAdmin):
    list_display = ['id', 'digest', 'expires_at', 'created_at']
    ordering = ['-created_at']
    readonly_fields = ['digest', 'expires_at', 'created_at']
