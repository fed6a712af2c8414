"""
Django Admin configuration for requisition models.
"""
from django.contrib import admin
from .models import Request, RequestLine


class RequestLineInline(admin.TabularInline):
    model = RequestLine
    extra = 0
    readonly_fields = ['item', 'quantity']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Request)
class RequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'project_name', 'requester', 'priority', 'status', 'item_count', 'created_at']
    list_filter = ['status', 'priority', 'created_at']
    search_fields = ['project_name', 'requester__email', 'requester__name']
    ordering = ['-created_at']
    # Status changes go through the workflow so stock stays in sync
    readonly_fields = ['status', 'approved_by', 'approved_at', 'created_at', 'updated_at']
    raw_id_fields = ['requester']
    inlines = [RequestLineInline]


@admin.register(RequestLine)
class RequestLineAdmin(admin.ModelAdmin):
    list_display = ['id', 'request', 'item', 'quantity']
    list_filter = ['request__status']
    search_fields = ['item__name', 'request__project_name']
    # Lines are immutable after submission
    readonly_fields = ['request', 'item', 'quantity', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
