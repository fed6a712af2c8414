"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import Category, Item


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'item_count', 'created_at']
    search_fields = ['name']
    ordering = ['name']

    def item_count(self, obj):
        return Item.objects.filter(category__iexact=obj.name, is_active=True).count()
    item_count.short_description = 'Items'


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category', 'quantity', 'min_quantity', 'status', 'is_active', 'updated_at']
    list_filter = ['status', 'category', 'is_active']
    search_fields = ['name', 'description']
    ordering = ['name']
    readonly_fields = ['status', 'last_restocked', 'created_at', 'updated_at']
