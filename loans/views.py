"""
Loan API Views.

Implements:
- GET/POST /loans - List (?status=) and submit loans
- GET /loans/{id} - Loan detail
- GET /loans/user/{user_id} - A borrower's loans
- PUT /loans/{id}/approve|reject|return|cancel - Workflow transitions
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Loan
from .serializers import LoanActionSerializer, LoanCreateSerializer, LoanSerializer
from . import services


class LoanListCreateView(generics.ListAPIView):
    """
    GET: List loans, newest first
    POST: Submit a pending loan

    Query Parameters (GET):
        - status: Filter by loan status
    """
    serializer_class = LoanSerializer

    def get_queryset(self):
        status_filter = self.request.query_params.get('status', '').strip().lower()
        if status_filter not in Loan.Status.values:
            status_filter = None
        return services.list_loans(status=status_filter)

    def post(self, request):
        serializer = LoanCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        loan = services.create_loan(serializer.validated_data)
        return Response(LoanSerializer(loan).data, status=status.HTTP_201_CREATED)


class UserLoanListView(generics.ListAPIView):
    """GET: Loans of one borrower."""
    serializer_class = LoanSerializer

    def get_queryset(self):
        return services.list_loans(user_id=self.kwargs['user_id'])


class LoanDetailView(APIView):
    """GET: Retrieve a loan."""

    def get(self, request, pk):
        return Response(LoanSerializer(services.get_loan(pk)).data)


class LoanActionView(APIView):
    """
    PUT: Run one workflow action on a loan.

    Request body: {"approved_by": 2, "notes": "..."}  (cancel also accepts actor_id)
    """
    loan_action = None

    def put(self, request, pk):
        serializer = LoanActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        actor = serializer.validated_data['actor']
        notes = serializer.validated_data['notes']

        if self.loan_action == 'approve':
            loan = services.approve_loan(pk, actor, notes)
        elif self.loan_action == 'reject':
            loan = services.reject_loan(pk, actor, notes)
        elif self.loan_action == 'return':
            loan = services.return_loan(pk, actor, notes)
        else:
            loan = services.cancel_loan(pk, actor)

        return Response(LoanSerializer(loan).data)
