"""
Inventory API Views.

Implements:
- CRUD for Category
- Item list/create/detail/update/soft delete
- Bulk import and bulk stock count reconciliation (rate limited)
"""
import logging

from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import RateLimitMixin
from .models import Category
from .serializers import CategorySerializer, ItemSerializer
from . import services

logger = logging.getLogger(__name__)


# =============================================================================
# Category Views
# =============================================================================

class CategoryListCreateView(generics.ListCreateAPIView):
    """
    GET: List all categories
    POST: Create a new category
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer


class CategoryDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a category
    PUT/PATCH: Update a category
    DELETE: Delete a category
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer

    def destroy(self, request, *args, **kwargs):
        super().destroy(request, *args, **kwargs)
        return Response({'success': True, 'message': 'Category deleted successfully'})


# =============================================================================
# Item Views
# =============================================================================

class ItemListCreateView(generics.ListCreateAPIView):
    """
    GET: List active items with derived stock status
    POST: Create a new item

    Query Parameters (GET):
        - category: Filter by category name
        - status: Filter by stock status (in-stock, low-stock, out-of-stock)
    """
    serializer_class = ItemSerializer

    def get_queryset(self):
        queryset = services.list_items()

        category = self.request.query_params.get('category', '').strip()
        if category:
            queryset = queryset.filter(category__iexact=category)

        stock_status = self.request.query_params.get('status', '').strip()
        if stock_status:
            queryset = queryset.filter(status=stock_status)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.create_item(serializer.validated_data)
        return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)


class ItemDetailView(APIView):
    """
    GET: Retrieve an active item
    PUT: Update item fields (status is recomputed, never accepted)
    DELETE: Soft-delete an item not referenced by open requests or loans
    """

    def get(self, request, pk):
        return Response(ItemSerializer(services.get_item(pk)).data)

    def put(self, request, pk):
        serializer = ItemSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        item = services.update_item(pk, serializer.validated_data)
        return Response(ItemSerializer(item).data)

    def delete(self, request, pk):
        services.soft_delete_item(pk)
        return Response({'success': True, 'message': 'Item deleted successfully'})


class BulkItemCreateView(RateLimitMixin, APIView):
    """
    POST: Initial stock import.

    Request body: [{"name": ..., "category": ..., "quantity": 10, "minQuantity": 2}, ...]
    Invalid rows are reported in `errors`; valid rows are created.
    """
    rate_limit_max_requests = 10
    rate_limit_window_seconds = 60

    def post(self, request):
        outcome = services.bulk_create_items(request.data)
        items = ItemSerializer(outcome['items'], many=True).data
        return Response(
            {
                'success': True,
                'message': f"Successfully created {len(items)} items",
                'count': len(items),
                'items': items,
                'errorCount': len(outcome['errors']),
                'errors': outcome['errors'],
            },
            status=status.HTTP_201_CREATED
        )


class BulkStockUpdateView(RateLimitMixin, APIView):
    """
    POST: Stock count reconciliation.

    Request body: [{"id": 1, "quantity": 40}, {"name": "Cable", "quantity": 3}, ...]
    """
    rate_limit_max_requests = 10
    rate_limit_window_seconds = 60

    def post(self, request):
        outcome = services.bulk_update_stock(request.data)
        return Response({
            'success': True,
            'message': f"Updated {len(outcome['results'])} items",
            'updatedCount': len(outcome['results']),
            'errorCount': len(outcome['errors']),
            'results': outcome['results'],
            'errors': outcome['errors'],
        })
