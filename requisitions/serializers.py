"""
Serializers for requisition models.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import Request, RequestLine


class RequestLineSerializer(serializers.ModelSerializer):
    """A request line flattened with the item's descriptive fields."""
    item_id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(source='item.name', read_only=True)
    description = serializers.CharField(source='item.description', read_only=True)
    category = serializers.CharField(source='item.category', read_only=True)
    unit = serializers.CharField(source='item.unit', read_only=True)

    class Meta:
        model = RequestLine
        fields = ['id', 'item_id', 'quantity', 'name', 'description', 'category', 'unit']


class RequestLineCreateSerializer(serializers.Serializer):
    """Serializer for lines in the request creation body."""
    item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class RequestSerializer(serializers.ModelSerializer):
    """
    Full request with nested lines.
    Expects lines__item to be prefetched.
    """
    requester = UserMinimalSerializer(read_only=True)
    requester_id = serializers.IntegerField(read_only=True)
    approved_by = UserMinimalSerializer(read_only=True)
    items = RequestLineSerializer(source='lines', many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Request
        fields = [
            'id', 'project_name', 'requester', 'requester_id', 'reason',
            'priority', 'due_date', 'status', 'approved_by', 'approved_at',
            'items', 'item_count', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class RequestCreateSerializer(serializers.Serializer):
    """
    Serializer for creating requests via POST /requests

    Request format:
    {
        "project_name": "Office renovation",
        "requester_id": 3,
        "reason": "...",
        "priority": "high",
        "due_date": "2024-06-01",
        "items": [
            {"item_id": 1, "quantity": 2},
            {"item_id": 5, "quantity": 1}
        ]
    }
    """
    project_name = serializers.CharField(max_length=200)
    requester_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(choices=Request.Priority.choices, default=Request.Priority.MEDIUM)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
    items = RequestLineCreateSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")

        item_ids = [line['item_id'] for line in value]
        if len(item_ids) != len(set(item_ids)):
            raise serializers.ValidationError("Duplicate items in request")

        return value


class RequestStatusSerializer(serializers.Serializer):
    """Body of PATCH /requests/{id}/status."""
    status = serializers.CharField()
    approved_by = serializers.IntegerField(required=False, allow_null=True, default=None)
