"""
Serializers for inventory models.
Item fields are exposed in camelCase (minQuantity, isActive, ...) as the
warehouse clients expect; status is always read-only.
"""
from rest_framework import serializers
from .models import Category, Item


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category model."""
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'item_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_item_count(self, obj):
        """Count of active items filed under this category name."""
        return Item.objects.filter(category__iexact=obj.name, is_active=True).count()


class ItemSerializer(serializers.ModelSerializer):
    """Full item representation, also used to validate create/update input."""
    minQuantity = serializers.IntegerField(source='min_quantity', min_value=0, default=0)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    lastRestocked = serializers.DateTimeField(source='last_restocked', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Item
        fields = [
            'id', 'name', 'description', 'category', 'unit', 'price',
            'quantity', 'minQuantity', 'status', 'isActive',
            'lastRestocked', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'status']


class ItemMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested representations."""
    class Meta:
        model = Item
        fields = ['id', 'name', 'category', 'unit']
