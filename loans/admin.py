"""
Django Admin configuration for loan models.
"""
from django.contrib import admin
from .models import Loan


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'item', 'quantity', 'status', 'end_date', 'actual_return_date']
    list_filter = ['status', 'end_date']
    search_fields = ['user__email', 'user__name', 'item__name']
    ordering = ['-created_at']
    readonly_fields = ['status', 'approved_by', 'approved_at', 'actual_return_date', 'reminders_sent', 'created_at', 'updated_at']
    raw_id_fields = ['user', 'item']

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            # Approval and return move exactly this item and quantity
            readonly += ['user', 'item', 'quantity']
        return readonly
