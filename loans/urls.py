"""
URL routing for loan API endpoints.
"""
from django.urls import path
from . import views

app_name = 'loans'

urlpatterns = [
    path('loans', views.LoanListCreateView.as_view(), name='loan-list'),
    path('loans/user/<int:user_id>', views.UserLoanListView.as_view(), name='loan-user-list'),
    path('loans/<uuid:pk>', views.LoanDetailView.as_view(), name='loan-detail'),
    path('loans/<uuid:pk>/approve', views.LoanActionView.as_view(loan_action='approve'), name='loan-approve'),
    path('loans/<uuid:pk>/reject', views.LoanActionView.as_view(loan_action='reject'), name='loan-reject'),
    path('loans/<uuid:pk>/return', views.LoanActionView.as_view(loan_action='return'), name='loan-return'),
    path('loans/<uuid:pk>/cancel', views.LoanActionView.as_view(loan_action='cancel'), name='loan-cancel'),
]
