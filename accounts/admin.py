"""
Django Admin configuration for user accounts.
"""
from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['id', 'email', 'name', 'role', 'department', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['email', 'name', 'department']
    ordering = ['email']
    exclude = ['password', 'user_permissions', 'groups']
    readonly_fields = ['last_login', 'created_at', 'updated_at']
