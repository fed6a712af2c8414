"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Categories
    path('categories', views.CategoryListCreateView.as_view(), name='category-list'),
    path('categories/<int:pk>', views.CategoryDetailView.as_view(), name='category-detail'),

    # Items
    path('items', views.ItemListCreateView.as_view(), name='item-list'),
    path('items/bulk', views.BulkItemCreateView.as_view(), name='item-bulk-create'),
    path('items/bulk-update-stock', views.BulkStockUpdateView.as_view(), name='item-bulk-update-stock'),
    path('items/<int:pk>', views.ItemDetailView.as_view(), name='item-detail'),
]
