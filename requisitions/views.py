"""
Requisition API Views.

Implements:
- GET /requests - List requests (?status=)
- POST /requests - Create a request with its lines
- GET /requests/user/{user_id} - A requester's requests
- GET/DELETE /requests/{id} - Request detail, delete
- PATCH /requests/{id}/status - Approval workflow transition
- GET /dashboard/stats - Counts per item, request and loan status
"""
import logging

from django.db import models
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from inventory import ledger
from inventory.models import Item
from loans.models import Loan
from .models import Request
from .serializers import (
    RequestCreateSerializer,
    RequestSerializer,
    RequestStatusSerializer,
)
from . import services

logger = logging.getLogger(__name__)


class RequestListCreateView(generics.ListAPIView):
    """
    GET: List all requests, newest first
    POST: Create a new pending request

    Query Parameters (GET):
        - status: Filter by status (pending, approved, denied, fulfilled, out_of_stock)
    """
    serializer_class = RequestSerializer

    def get_queryset(self):
        status_filter = self.request.query_params.get('status', '').strip().lower()
        if status_filter not in Request.Status.values:
            status_filter = None
        return services.list_requests(status=status_filter)

    def post(self, request):
        serializer = RequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        created = services.create_request(
            requester_id=data['requester_id'],
            project_name=data['project_name'],
            items=[dict(line) for line in data['items']],
            reason=data['reason'],
            priority=data['priority'],
            due_date=data['due_date'],
        )
        return Response(RequestSerializer(created).data, status=status.HTTP_201_CREATED)


class UserRequestListView(generics.ListAPIView):
    """GET: Requests submitted by one user."""
    serializer_class = RequestSerializer

    def get_queryset(self):
        return services.list_requests(requester_id=self.kwargs['user_id'])


class RequestDetailView(APIView):
    """
    GET: Retrieve a request with its lines
    DELETE: Delete a request and its lines
    """

    def get(self, request, pk):
        return Response(RequestSerializer(services.get_request(pk)).data)

    def delete(self, request, pk):
        services.delete_request(pk)
        return Response({'success': True, 'message': 'Request deleted successfully'})


class RequestStatusView(APIView):
    """
    PATCH: Transition a pending request.

    Request body: {"status": "approved", "approved_by": 2}

    Returns:
        - 200: Updated request
        - 400: Invalid transition or insufficient stock
        - 403: approved_by is not an admin or manager
        - 404: Request or a referenced item not found
    """

    def patch(self, request, pk):
        serializer = RequestStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = services.transition_request(
            pk,
            serializer.validated_data['status'].strip().lower(),
            serializer.validated_data['approved_by'],
        )
        return Response(RequestSerializer(updated).data)


class DashboardStatsView(APIView):
    """
    GET: Counts of active items per stock status, requests per status and
    loans per status.
    """

    def get(self, request):
        items = Item.objects.filter(is_active=True).aggregate(
            total=models.Count('id'),
            in_stock=models.Count('id', filter=models.Q(status=ledger.IN_STOCK)),
            low_stock=models.Count('id', filter=models.Q(status=ledger.LOW_STOCK)),
            out_of_stock=models.Count('id', filter=models.Q(status=ledger.OUT_OF_STOCK)),
        )

        requests = {value: 0 for value in Request.Status.values}
        for row in Request.objects.values('status').annotate(count=models.Count('id')):
            requests[row['status']] = row['count']
        requests['total'] = sum(requests.values())

        loans = {value: 0 for value in Loan.Status.values}
        for row in Loan.objects.values('status').annotate(count=models.Count('id')):
            loans[row['status']] = row['count']
        loans['total'] = sum(loans.values())

        return Response({'items': items, 'requests': requests, 'loans': loans})
