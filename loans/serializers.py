"""
Serializers for loan models.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from inventory.serializers import ItemMinimalSerializer
from .models import Loan


class LoanSerializer(serializers.ModelSerializer):
    """Full loan with borrower, item and approver."""
    user = UserMinimalSerializer(read_only=True)
    user_id = serializers.IntegerField(read_only=True)
    item = ItemMinimalSerializer(read_only=True)
    item_id = serializers.IntegerField(read_only=True)
    approved_by = UserMinimalSerializer(read_only=True)
    is_past_due = serializers.BooleanField(read_only=True)

    class Meta:
        model = Loan
        fields = [
            'id', 'user', 'user_id', 'item', 'item_id', 'quantity',
            'start_date', 'end_date', 'actual_return_date', 'status',
            'purpose', 'notes', 'approved_by', 'approved_at',
            'reminders_sent', 'is_past_due', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class LoanCreateSerializer(serializers.Serializer):
    """
    Serializer for creating loans via POST /loans

    Request format:
    {
        "user_id": 3,
        "item_id": 7,
        "quantity": 1,
        "start_date": "2024-06-01T09:00:00Z",
        "end_date": "2024-06-08T17:00:00Z",
        "purpose": "Site survey"
    }
    """
    user_id = serializers.IntegerField(min_value=1)
    item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)
    start_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    end_date = serializers.DateTimeField()
    purpose = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class LoanActionSerializer(serializers.Serializer):
    """Body of PUT /loans/{id}/approve|reject|return|cancel."""
    approved_by = serializers.IntegerField(required=False, allow_null=True, default=None)
    actor_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        attrs['actor'] = attrs['approved_by'] if attrs['approved_by'] is not None else attrs['actor_id']
        return attrs
