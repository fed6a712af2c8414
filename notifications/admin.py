"""
Django Admin configuration for notifications.
"""
from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'type', 'title', 'is_read', 'created_at']
    list_filter = ['type', 'is_read', 'created_at']
    search_fields = ['title', 'message', 'user__email', 'related_id']
    ordering = ['-created_at']
    readonly_fields = ['user', 'type', 'title', 'message', 'related_id', 'created_at']
