"""
Serializers for notifications.
"""
from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'user_id', 'type', 'title', 'message', 'related_id', 'is_read', 'created_at']
        read_only_fields = fields


class NotificationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    type = serializers.ChoiceField(choices=Notification.Type.choices)
    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    related_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
